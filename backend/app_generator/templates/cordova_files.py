"""
File renderers for generated Cordova projects.

Each function takes an ``AppConfig`` and returns the text of one project
file. The generator produces the app skeleton; the ``build_*`` renderers are
used by the Cordova builder for the build-ready layout.
"""

import json
from datetime import datetime
from typing import Any, Dict, List
from xml.sax.saxutils import escape, quoteattr

import yaml

from app_generator.entities.generated_app import AppConfig

from .catalog import plugin_version

CORDOVA_CLI_VERSION = "^14.0.0"
CORDOVA_ANDROID_VERSION = "^14.0.1"
ANDROID_TARGET_SDK = 35
DEFAULT_PLUGINS = ["cordova-plugin-whitelist", "cordova-plugin-statusbar"]

GITIGNORE = """# Cordova
platforms/
plugins/
node_modules/

# IDE
.vscode/
.idea/
*.swp
*.swo

# OS
.DS_Store
Thumbs.db

# Logs
*.log
npm-debug.log*

# Build
www/cordova.js
www/cordova_plugins.js
www/plugins/
"""


def package_json(config: AppConfig) -> str:
    return json.dumps(
        {
            "name": config.app_name.lower(),
            "displayName": config.display_name,
            "version": config.version,
            "description": config.description,
            "main": "index.js",
            "scripts": {
                "build": "cordova build",
                "build:android": "cordova build android",
                "build:android:release": "cordova build android --release",
                "run:android": "cordova run android",
                "clean": "cordova clean",
                "prepare": "cordova prepare",
            },
            "keywords": ["cordova", "mobile", "app", config.category, config.app_name.lower()],
            "author": f"{config.author_name} <{config.author_email}>",
            "license": "MIT",
            "devDependencies": {"cordova": CORDOVA_CLI_VERSION},
            "cordova": {"platforms": ["android"], "plugins": {}},
        },
        indent=2,
        ensure_ascii=False,
    )


def plugin_specs(config: AppConfig) -> List[Dict[str, Any]]:
    return [{"id": plugin, "version": plugin_version(plugin), "variables": {}} for plugin in config.plugins]


def config_xml(config: AppConfig) -> str:
    default_plugins = "\n".join(
        f'    <plugin name="{plugin}" spec="{plugin_version(plugin)}" />' for plugin in DEFAULT_PLUGINS
    )
    app_plugins = "\n".join(
        f'    <plugin name="{plugin}" spec="{plugin_version(plugin)}" />'
        for plugin in config.plugins
        if plugin not in DEFAULT_PLUGINS
    )
    author_href = quoteattr(f"https://github.com/{config.github_username}")
    return f"""<?xml version='1.0' encoding='utf-8'?>
<widget id="{config.package_name}" version="{config.version}" xmlns="http://www.w3.org/ns/widgets" xmlns:cdv="http://cordova.apache.org/ns/1.0">
    <name>{escape(config.display_name)}</name>
    <description>{escape(config.description)}</description>
    <author email={quoteattr(config.author_email)} href={author_href}>
        {escape(config.author_name)}
    </author>
    <content src="index.html" />
    <access origin="*" />
    <allow-intent href="http://*/*" />
    <allow-intent href="https://*/*" />
    <allow-intent href="tel:*" />
    <allow-intent href="sms:*" />
    <allow-intent href="mailto:*" />
    <allow-intent href="geo:*" />

    <platform name="android">
        <allow-intent href="market:*" />
        <icon density="mdpi" src="www/img/logo.png" />
        <icon density="hdpi" src="www/img/logo.png" />
        <icon density="xhdpi" src="www/img/logo.png" />
        <icon density="xxhdpi" src="www/img/logo.png" />
    </platform>

    <preference name="DisallowOverscroll" value="true" />
    <preference name="android-minSdkVersion" value="{config.android_min_sdk}" />
    <preference name="android-targetSdkVersion" value="{ANDROID_TARGET_SDK}" />
    <preference name="android-compileSdkVersion" value="{ANDROID_TARGET_SDK}" />
    <preference name="BackupWebStorage" value="none" />
    <preference name="Orientation" value="portrait" />

{default_plugins}
{app_plugins}
</widget>
"""


def index_html(config: AppConfig) -> str:
    features = "\n".join(f"            <li>{escape(feature)}</li>" for feature in config.features)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta http-equiv="Content-Security-Policy" content="default-src 'self' data: gap: https://ssl.gstatic.com 'unsafe-eval'; style-src 'self' 'unsafe-inline'; media-src *; img-src 'self' data: content:;">
    <meta name="format-detection" content="telephone=no">
    <meta name="msapplication-tap-highlight" content="no">
    <meta name="viewport" content="initial-scale=1, width=device-width, viewport-fit=cover">
    <meta name="theme-color" content="{config.color}">
    <link rel="stylesheet" href="css/index.css">
    <title>{escape(config.display_name)}</title>
</head>
<body>
    <div class="app">
        <header class="app-header">
            <span class="app-icon">{config.icon}</span>
            <h1>{escape(config.display_name)}</h1>
        </header>
        <main>
            <p class="description">{escape(config.description)}</p>
            <ul class="features">
{features}
            </ul>
            <div id="deviceready" class="status">
                <p class="event listening">Connecting to device</p>
                <p class="event received">Device is ready</p>
            </div>
        </main>
    </div>
    <script src="cordova.js"></script>
    <script src="js/index.js"></script>
</body>
</html>
"""


def index_css(config: AppConfig) -> str:
    return f"""* {{
    box-sizing: border-box;
    -webkit-tap-highlight-color: rgba(0, 0, 0, 0);
}}

body {{
    margin: 0;
    font-family: system-ui, -apple-system, "Segoe UI", Roboto, sans-serif;
    background: #f5f7fa;
    color: #1f2933;
}}

.app-header {{
    display: flex;
    align-items: center;
    gap: 12px;
    padding: 24px 16px;
    background: {config.color};
    color: #ffffff;
}}

.app-icon {{
    font-size: 32px;
}}

main {{
    padding: 16px;
}}

.features li {{
    margin-bottom: 8px;
}}

.event.received,
#deviceready.ready .event.listening {{
    display: none;
}}

#deviceready.ready .event.received {{
    display: block;
    color: {config.color};
}}
"""


def index_js(config: AppConfig) -> str:
    plugins = json.dumps(config.plugins)
    return f"""/*
 * {config.display_name}
 * Generated by Cordova App Generator
 */

var app = {{
    plugins: {plugins},

    initialize: function () {{
        document.addEventListener('deviceready', this.onDeviceReady.bind(this), false);
    }},

    onDeviceReady: function () {{
        console.log('Running cordova-' + cordova.platformId + '@' + cordova.version);
        document.getElementById('deviceready').classList.add('ready');
    }}
}};

app.initialize();
"""


def readme(config: AppConfig) -> str:
    features = "\n".join(f"- {feature}" for feature in config.features) or "- Cordova starter app"
    plugins = "\n".join(f"- `{plugin}`" for plugin in config.plugins) or "- none"
    return f"""# {config.display_name}

{config.description}

## App Information

- **Package Name:** `{config.package_name}`
- **Category:** {config.category}
- **Platform:** Android (Cordova)
- **Version:** {config.version}

## Features

{features}

## Build Instructions

```bash
git clone https://github.com/{config.github_username}/{config.app_name}.git
cd {config.app_name}
npm install
cordova platform add android
cordova build android
```

## Plugins Used

{plugins}

## License

MIT, see [LICENSE](LICENSE).

## Author

**{config.author_name}** ({config.author_email})
"""


def license_text(config: AppConfig, year: int = None) -> str:
    year = year or datetime.now().year
    return f"""MIT License

Copyright (c) {year} {config.author_name}

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""


# =============================================================================
# Build-ready layout
# =============================================================================


def build_config_xml(config: AppConfig) -> str:
    return f"""<?xml version='1.0' encoding='utf-8'?>
<widget id="{config.package_name}" version="{config.version}" xmlns="http://www.w3.org/ns/widgets" xmlns:cdv="http://cordova.apache.org/ns/1.0">
    <name>{escape(config.display_name)}</name>
    <description>{escape(config.description or "Sample Apache Cordova App")}</description>
    <author email={quoteattr(config.author_email)} href="https://cordova.apache.org">
        {escape(config.author_name)}
    </author>
    <content src="index.html" />
    <allow-intent href="http://*/*" />
    <allow-intent href="https://*/*" />
    <preference name="android-minSdkVersion" value="{config.android_min_sdk}" />
</widget>
"""


def build_package_json(config: AppConfig) -> str:
    return json.dumps(
        {
            "name": config.package_name.lower(),
            "displayName": config.display_name,
            "version": config.version,
            "description": config.description,
            "main": "index.js",
            "scripts": {"test": 'echo "Error: no test specified" && exit 1'},
            "keywords": ["ecosystem:cordova"],
            "author": config.author_name,
            "license": "Apache-2.0",
            "devDependencies": {"cordova-android": CORDOVA_ANDROID_VERSION},
            "cordova": {"platforms": ["android"]},
        },
        indent=2,
        ensure_ascii=False,
    )


def manifest_json(config: AppConfig) -> str:
    return json.dumps(
        {
            "name": config.display_name,
            "short_name": config.app_name,
            "description": config.description,
            "start_url": "./index.html",
            "display": "standalone",
            "background_color": "#ffffff",
            "theme_color": config.color,
            "icons": [
                {"src": "img/logo.png", "sizes": "192x192", "type": "image/png"},
                {"src": "img/logo.png", "sizes": "512x512", "type": "image/png"},
            ],
            "orientation": "portrait",
            "categories": [config.category or "utilities"],
            "lang": "en",
        },
        indent=2,
        ensure_ascii=False,
    )


def codemagic_workflow(workflow_id: str) -> Dict[str, Any]:
    return {
        "workflows": {
            workflow_id: {
                "name": "Build Cordova Android App",
                "max_build_duration": 60,
                "scripts": [
                    {
                        "name": "Install Node.js & Cordova",
                        "script": "curl -fsSL https://deb.nodesource.com/setup_18.x | bash -\n"
                        "apt-get install -y nodejs\n"
                        "npm install -g cordova\n",
                    },
                    {"name": "Install project dependencies", "script": "npm install\n"},
                    {
                        "name": "Add Android platform & build release",
                        "script": "cordova platform add android\ncordova build android --release\n",
                    },
                ],
                "artifacts": [
                    "platforms/android/app/build/outputs/bundle/release/app-release.aab",
                    "platforms/android/app/build/outputs/apk/release/app-release.apk",
                ],
            }
        }
    }


def codemagic_yaml(workflow_id: str) -> str:
    return yaml.safe_dump(codemagic_workflow(workflow_id), sort_keys=False, allow_unicode=True)


_BUILD_SCRIPT = """#!/bin/bash
# {title} script for {display_name}

set -e

if ! command -v cordova &> /dev/null; then
    echo "Cordova CLI not found. Installing..."
    npm install -g cordova
fi

npm install

if [ ! -d "platforms/android" ]; then
    cordova platform add android
fi

{command}
"""


def build_scripts(config: AppConfig) -> Dict[str, str]:
    scripts = {
        "build.sh": ("Build", "cordova build android"),
        "build-release.sh": ("Release build", "cordova build android --release"),
        "run.sh": ("Run", "cordova run android"),
    }
    return {
        name: _BUILD_SCRIPT.format(title=title, display_name=config.display_name, command=command)
        for name, (title, command) in scripts.items()
    }
