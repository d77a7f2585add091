"""Authentication endpoints for GitHub, Codemagic and the Amazon Appstore."""

from fastapi import APIRouter, Depends, HTTPException, status

from app_generator.api.deps import get_container
from app_generator.core.container import AppContainer
from app_generator.dtos.auth import (
    AppstoreAuthRequest,
    CodemagicAuthRequest,
    GithubAuthRequest,
    SignOutRequest,
)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/github")
async def authenticate_github(body: GithubAuthRequest, container: AppContainer = Depends(get_container)):
    """Validate a GitHub token and its repository scopes."""
    permissions = await container.controller.authenticate_github(body.username, body.token)
    return {**container.github.auth_status(), "scopes": permissions["scopes"]}


@router.post("/codemagic")
async def authenticate_codemagic(body: CodemagicAuthRequest, container: AppContainer = Depends(get_container)):
    await container.controller.authenticate_codemagic(body.api_token, body.team_id)
    return container.codemagic.auth_status()


@router.post("/appstore")
async def authenticate_appstore(body: AppstoreAuthRequest, container: AppContainer = Depends(get_container)):
    return await container.appstore.authenticate(body.client_id, body.client_secret, body.developer_id)


@router.get("/status")
def auth_status(container: AppContainer = Depends(get_container)):
    return {
        "github": container.github.auth_status(),
        "codemagic": container.codemagic.auth_status(),
        "appstore": container.appstore.auth_status(),
    }


@router.post("/signout")
def sign_out(body: SignOutRequest, container: AppContainer = Depends(get_container)):
    """Sign out of one service, or all of them when ``service`` is omitted."""
    clients = {
        "github": container.github,
        "codemagic": container.codemagic,
        "appstore": container.appstore,
    }
    if body.service is not None and body.service not in clients:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown service '{body.service}'",
        )

    targets = [body.service] if body.service else list(clients)
    for name in targets:
        clients[name].sign_out()
    return {"signedOut": targets}
