"""Credential endpoints: start the authorization flow and hand back its token."""

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel

from build_monitor.auth.credentials import AuthorizationFlow
from build_monitor.dependencies import get_authorization, get_dispatcher
from build_monitor.refresh.messages import MessageDispatcher, MessageId

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


class AuthorizeRequest(BaseModel):
    redirect_uri: str


class TokenRequest(BaseModel):
    redirect_url: str | None = None
    access_token: str | None = None
    state: str | None = None


@router.post("/authorize", summary="Start authorization", description="Forget the stored access token and return the authorize url with a single-use state.")
async def authorize(body: AuthorizeRequest, flow: AuthorizationFlow = Depends(get_authorization)):
    url, state = await flow.start(body.redirect_uri)
    return {"status": "success", "data": {"authorize_url": url, "state": state}}


@router.post("/token", status_code=202, summary="Store an access token", description="Accept the token returned by the authorization server, then run one refresh in the background.")
async def token(
    body: TokenRequest,
    background_tasks: BackgroundTasks,
    dispatcher: MessageDispatcher = Depends(get_dispatcher),
):
    # The refresh half of the credential request runs after the response is sent
    await dispatcher.store_credential(body.redirect_url, body.access_token, body.state)
    background_tasks.add_task(dispatcher.dispatch, MessageId.REQUEST_REFRESH)
    return {"status": "success", "data": {"refresh_scheduled": True}}
