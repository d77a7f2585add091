"""
Validation of the generation form, custom templates and ``codemagic.yaml``.

Form and template checks collect every problem into a list so the UI can show
them together. ``validate_codemagic_yaml`` parses a user supplied workflow
with PyYAML and checks its shape with Pydantic, returning field-level errors
instead of raising.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from app_generator.entities.generation_run import GenerationRequest
from app_generator.entities.template import TEMPLATE_CATEGORIES
from app_generator.services.exceptions import ValidationError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PACKAGE_PREFIX_PATTERN = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)+$")
HEX_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")
GITHUB_TOKEN_PREFIXES = ("ghp_", "github_pat_")
CODEMAGIC_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
CODEMAGIC_TOKEN_LENGTH = 43

TEMPLATE_REQUIRED_FIELDS = ["name", "displayName", "description", "icon", "color"]


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def is_valid_package_prefix(prefix: Optional[str]) -> bool:
    return bool(prefix) and PACKAGE_PREFIX_PATTERN.match(prefix) is not None


def _humanize(field: str) -> str:
    return re.sub(r"([A-Z])", r" \1", field).lower()


# =============================================================================
# Generation form
# =============================================================================


def generation_form_errors(request: GenerationRequest) -> List[str]:
    errors: List[str] = []
    required = {
        "packagePrefix": request.package_prefix,
        "authorName": request.author_name,
        "authorEmail": request.author_email,
    }
    for field, value in required.items():
        if not value or not value.strip():
            errors.append(f"Please fill in the {_humanize(field)}")

    if request.needs_github:
        if not request.github_username.strip():
            errors.append("GitHub username is required for GitHub integration features")
        token = request.github_token.strip()
        if not token:
            errors.append("GitHub personal access token is required for GitHub integration features")
        elif not token.startswith(GITHUB_TOKEN_PREFIXES):
            errors.append("Please enter a valid GitHub personal access token (starts with ghp_ or github_pat_)")

    if request.author_email.strip() and not is_valid_email(request.author_email):
        errors.append("Please enter a valid email address")
    if request.package_prefix.strip() and not is_valid_package_prefix(request.package_prefix):
        errors.append("Please enter a valid package prefix (e.g., com.yourname)")
    return errors


def validate_generation_form(request: GenerationRequest) -> None:
    """Raise ``ValidationError`` listing every problem of the form."""
    errors = generation_form_errors(request)
    if errors:
        raise ValidationError(errors[0], errors)


# =============================================================================
# Tokens
# =============================================================================


def github_token_error(token: Optional[str]) -> Optional[str]:
    if not token:
        return "Token is required"
    if not token.startswith(GITHUB_TOKEN_PREFIXES):
        return "Invalid token format. Must start with ghp_ or github_pat_"
    if len(token) < 20:
        return "Token is too short"
    return None


def codemagic_token_error(token: Optional[str]) -> Optional[str]:
    if not token:
        return "Token is required"
    if len(token) != CODEMAGIC_TOKEN_LENGTH:
        return f"Codemagic token must be exactly {CODEMAGIC_TOKEN_LENGTH} characters long"
    if not CODEMAGIC_TOKEN_PATTERN.match(token):
        return "Token contains invalid characters"
    return None


# =============================================================================
# Templates
# =============================================================================


def template_errors(data: Mapping[str, Any]) -> List[str]:
    """Problems of a camelCase template document."""
    errors: List[str] = []
    for field in TEMPLATE_REQUIRED_FIELDS:
        value = data.get(field)
        if value is None or str(value).strip() == "":
            errors.append(f"Required field '{field}' is missing or empty")

    if data.get("plugins") is not None and not isinstance(data["plugins"], list):
        errors.append("Plugins must be an array")
    if data.get("tags") is not None and not isinstance(data["tags"], list):
        errors.append("Tags must be an array")

    category = data.get("category")
    if category and category not in TEMPLATE_CATEGORIES:
        errors.append(f"Invalid category '{category}'. Must be one of: {', '.join(TEMPLATE_CATEGORIES)}")

    color = data.get("color")
    if color and not HEX_COLOR_PATTERN.match(str(color)):
        errors.append("Color must be a valid hex color (e.g., #FF5733)")
    return errors


def validate_template(data: Mapping[str, Any]) -> None:
    errors = template_errors(data)
    if errors:
        raise ValidationError(f"Template validation failed: {', '.join(errors)}", errors)


# =============================================================================
# codemagic.yaml
# =============================================================================


class CodemagicScriptSchema(BaseModel):
    name: Optional[str] = None
    script: str


class CodemagicWorkflowSchema(BaseModel):
    name: Optional[str] = None
    max_build_duration: Optional[int] = Field(default=None, ge=1, le=120)
    scripts: List[Any] = Field(min_length=1)
    artifacts: List[str] = Field(default_factory=list)


class CodemagicYamlSchema(BaseModel):
    workflows: Dict[str, CodemagicWorkflowSchema] = Field(min_length=1)


class YamlErrorDetail(BaseModel):
    field: str
    message: str


class YamlValidationResult(BaseModel):
    valid: bool
    errors: List[YamlErrorDetail] = Field(default_factory=list)
    workflow_ids: List[str] = Field(default_factory=list)


def validate_codemagic_yaml(content: str) -> YamlValidationResult:
    """Parse ``content`` and check it declares at least one workflow with scripts."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        return YamlValidationResult(
            valid=False,
            errors=[YamlErrorDetail(field="<yaml>", message=f"Invalid YAML syntax: {e}")],
        )

    if not isinstance(data, dict):
        return YamlValidationResult(
            valid=False,
            errors=[YamlErrorDetail(field="<root>", message="codemagic.yaml must be a mapping at the root level")],
        )

    try:
        parsed = CodemagicYamlSchema.model_validate(data)
    except PydanticValidationError as e:
        return YamlValidationResult(
            valid=False,
            errors=[
                YamlErrorDetail(field=".".join(str(loc) for loc in err["loc"]) or "<root>", message=err["msg"])
                for err in e.errors()
            ],
        )
    return YamlValidationResult(valid=True, workflow_ids=list(parsed.workflows))
