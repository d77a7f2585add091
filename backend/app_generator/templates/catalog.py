"""
Built-in app templates and the Cordova plugin catalog.

Plugin versions are pinned: generated ``config.xml`` files never ask Cordova
for the "latest" release of a plugin.
"""

from typing import Any, Dict, List

DEFAULT_PLUGIN_VERSION = "1.0.0"

PLUGIN_VERSIONS: Dict[str, str] = {
    "cordova-plugin-whitelist": "1.3.5",
    "cordova-plugin-splashscreen": "6.0.2",
    "cordova-plugin-statusbar": "4.0.0",
    "cordova-plugin-device": "2.1.0",
    "cordova-plugin-geolocation": "5.0.0",
    "cordova-plugin-camera": "7.0.0",
    "cordova-plugin-file": "8.0.1",
    "cordova-plugin-network-information": "3.0.0",
    "cordova-plugin-vibration": "4.0.0",
    "cordova-plugin-local-notification": "0.9.0-beta.2",
    "cordova-plugin-calendar": "5.1.5",
    "cordova-plugin-contacts": "4.0.0",
    "cordova-plugin-media": "7.0.0",
    "cordova-plugin-media-capture": "5.0.0",
    "cordova-plugin-barcodescanner": "0.7.4",
    "cordova-plugin-inappbrowser": "6.0.0",
}

AVAILABLE_PLUGINS: List[Dict[str, str]] = [
    {"id": "cordova-plugin-geolocation", "name": "Geolocation", "category": "device"},
    {"id": "cordova-plugin-camera", "name": "Camera", "category": "media"},
    {"id": "cordova-plugin-file", "name": "File System", "category": "storage"},
    {"id": "cordova-plugin-local-notification", "name": "Local Notifications", "category": "notifications"},
    {"id": "cordova-plugin-network-information", "name": "Network Information", "category": "device"},
    {"id": "cordova-plugin-device", "name": "Device Information", "category": "device"},
    {"id": "cordova-plugin-vibration", "name": "Vibration", "category": "device"},
    {"id": "cordova-plugin-media", "name": "Media Playback", "category": "media"},
    {"id": "cordova-plugin-calendar", "name": "Calendar Access", "category": "productivity"},
    {"id": "cordova-plugin-contacts", "name": "Contacts", "category": "productivity"},
    {"id": "cordova-plugin-flashlight", "name": "Flashlight", "category": "utilities"},
    {"id": "phonegap-plugin-barcodescanner", "name": "Barcode Scanner", "category": "utilities"},
    {"id": "cordova-plugin-secure-storage", "name": "Secure Storage", "category": "security"},
    {"id": "cordova-plugin-fingerprint-aio", "name": "Fingerprint Authentication", "category": "security"},
    {"id": "cordova-plugin-health", "name": "Health Data", "category": "health"},
    {"id": "cordova-plugin-pedometer", "name": "Pedometer", "category": "health"},
    {"id": "cordova-plugin-social-sharing", "name": "Social Sharing", "category": "social"},
    {"id": "cordova-plugin-tts", "name": "Text-to-Speech", "category": "accessibility"},
    {"id": "cordova-plugin-speech-recognition", "name": "Speech Recognition", "category": "accessibility"},
    {"id": "cordova-plugin-background-mode", "name": "Background Mode", "category": "system"},
    {"id": "cordova-plugin-music-controls", "name": "Music Controls", "category": "media"},
    {"id": "cordova-plugin-statusbar", "name": "Status Bar", "category": "ui"},
    {"id": "cordova-plugin-splashscreen", "name": "Splash Screen", "category": "ui"},
    {"id": "cordova-plugin-whitelist", "name": "Whitelist", "category": "security"},
]


def plugin_version(plugin_id: str) -> str:
    version = PLUGIN_VERSIONS.get(plugin_id, DEFAULT_PLUGIN_VERSION)
    if version == "latest":
        return DEFAULT_PLUGIN_VERSION
    return version


CATEGORY_FEATURES: Dict[str, List[str]] = {
    "productivity": ["Task management", "Organization tools", "Productivity tracking", "Goal setting"],
    "utilities": ["Utility functions", "Tool integration", "Quick access", "Efficiency features"],
    "entertainment": ["Media playback", "Interactive content", "User engagement", "Entertainment features"],
    "education": ["Learning tools", "Progress tracking", "Educational content", "Study aids"],
    "health": ["Health monitoring", "Fitness tracking", "Wellness features", "Progress analytics"],
    "finance": ["Financial tracking", "Budget management", "Expense monitoring", "Financial reports"],
    "social": ["Social features", "Sharing capabilities", "Community interaction", "Communication tools"],
    "business": ["Business tools", "Professional features", "Workflow management", "Business analytics"],
    "games": ["Gameplay", "Score tracking", "Levels", "Achievements"],
    "lifestyle": ["Lifestyle features", "Personal tools", "Daily assistance", "Life management"],
}

DEFAULT_FEATURES = ["Custom features", "User-friendly interface", "Mobile optimized", "Cross-platform"]


def features_for_category(category: str) -> List[str]:
    return list(CATEGORY_FEATURES.get(category, DEFAULT_FEATURES))


BUILT_IN_TEMPLATES: List[Dict[str, Any]] = [
    {
        "id": "climate-monitor",
        "name": "ClimateMonitor",
        "displayName": "Climate Monitor",
        "description": "Weather and climate monitoring with real-time data, forecasts, and environmental insights",
        "category": "utilities",
        "icon": "🌤️",
        "color": "#4A90E2",
        "features": ["Real-time weather data", "7-day forecasts", "Climate insights", "Location-based alerts"],
        "plugins": ["cordova-plugin-geolocation", "cordova-plugin-network-information", "cordova-plugin-device"],
    },
    {
        "id": "task-master-pro",
        "name": "TaskMasterPro",
        "displayName": "Task Master Pro",
        "description": "Productivity and task management application with project tracking and team collaboration",
        "category": "productivity",
        "icon": "✅",
        "color": "#50C878",
        "features": ["Task organization", "Project management", "Time tracking", "Team collaboration"],
        "plugins": ["cordova-plugin-local-notification", "cordova-plugin-calendar", "cordova-plugin-file"],
    },
    {
        "id": "qr-scanner-plus",
        "name": "QRScannerPlus",
        "displayName": "QR Scanner Plus",
        "description": "QR code and barcode scanner with history tracking and batch scanning",
        "category": "utilities",
        "icon": "📱",
        "color": "#FF6B6B",
        "features": ["QR code scanning", "Barcode recognition", "History tracking", "Batch scanning"],
        "plugins": ["phonegap-plugin-barcodescanner", "cordova-plugin-camera", "cordova-plugin-flashlight"],
    },
    {
        "id": "expense-tracker",
        "name": "ExpenseTracker",
        "displayName": "Expense Tracker",
        "description": "Personal finance and expense tracking application with receipt scanning and budget management",
        "category": "finance",
        "icon": "💰",
        "color": "#FFD93D",
        "features": ["Expense tracking", "Budget management", "Receipt scanning", "Financial reports"],
        "plugins": ["cordova-plugin-camera", "cordova-plugin-file", "cordova-plugin-local-notification"],
    },
    {
        "id": "fitness-companion",
        "name": "FitnessCompanion",
        "displayName": "Fitness Companion",
        "description": "Health and fitness tracking with workout plans, progress analytics, and goal setting",
        "category": "health",
        "icon": "💪",
        "color": "#FF4757",
        "features": ["Workout tracking", "Health monitoring", "Progress analytics", "Goal setting"],
        "plugins": ["cordova-plugin-health", "cordova-plugin-pedometer", "cordova-plugin-geolocation"],
    },
    {
        "id": "study-timer",
        "name": "StudyTimer",
        "displayName": "Study Timer",
        "description": "Pomodoro timer and study session management with focus tracking and break reminders",
        "category": "education",
        "icon": "⏰",
        "color": "#3742FA",
        "features": ["Pomodoro technique", "Study sessions", "Break reminders", "Progress tracking"],
        "plugins": [
            "cordova-plugin-local-notification",
            "cordova-plugin-vibration",
            "cordova-plugin-background-mode",
        ],
    },
    {
        "id": "recipe-vault",
        "name": "RecipeVault",
        "displayName": "Recipe Vault",
        "description": "Recipe management and cooking assistant with meal planning and shopping lists",
        "category": "lifestyle",
        "icon": "👨‍🍳",
        "color": "#FF9F43",
        "features": ["Recipe storage", "Cooking timers", "Shopping lists", "Meal planning"],
        "plugins": ["cordova-plugin-camera", "cordova-plugin-file", "cordova-plugin-social-sharing"],
    },
    {
        "id": "password-guardian",
        "name": "PasswordGuardian",
        "displayName": "Password Guardian",
        "description": "Password manager and generator with biometric authentication and encrypted storage",
        "category": "utilities",
        "icon": "🔐",
        "color": "#2F3542",
        "features": ["Password storage", "Secure encryption", "Biometric unlock", "Password generation"],
        "plugins": ["cordova-plugin-secure-storage", "cordova-plugin-fingerprint-aio"],
    },
    {
        "id": "music-player-pro",
        "name": "MusicPlayerPro",
        "displayName": "Music Player Pro",
        "description": "Music player with playlist management, audio effects, and library organization",
        "category": "entertainment",
        "icon": "🎵",
        "color": "#8E44AD",
        "features": ["Music playback", "Playlist creation", "Audio effects", "Library management"],
        "plugins": ["cordova-plugin-media", "cordova-plugin-file", "cordova-plugin-music-controls"],
    },
    {
        "id": "language-buddy",
        "name": "LanguageBuddy",
        "displayName": "Language Buddy",
        "description": "Interactive language learning with flashcards, quizzes, and speech recognition",
        "category": "education",
        "icon": "🗣️",
        "color": "#00D2D3",
        "features": ["Language lessons", "Flashcard system", "Speech recognition", "Progress tracking"],
        "plugins": ["cordova-plugin-media", "cordova-plugin-tts", "cordova-plugin-speech-recognition"],
    },
]
