import hashlib
import hmac
import json
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from orgmirror.config import settings
from orgmirror.core.exceptions import ParseError
from orgmirror.integrations.github.github_webhook_parser import GitHubWebhookParser
from orgmirror.services import runtime
from orgmirror.utils.logger import logger

router = APIRouter()

parser = GitHubWebhookParser()


def verify_signature(payload: bytes, signature: Optional[str], secret: str) -> bool:
    if not secret or not signature:
        return False
    hash_payload = hmac.new(secret.encode(), payload, hashlib.sha256)
    expected_signature = f"sha256={hash_payload.hexdigest()}"
    return hmac.compare_digest(expected_signature, signature)


@router.post("/github/webhook")
async def github_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    signature: Optional[str] = Header(None, alias="X-Hub-Signature-256"),
    event: Optional[str] = Header(None, alias="X-GitHub-Event"),
    delivery: Optional[str] = Header(None, alias="X-GitHub-Delivery"),
):
    payload_data = await request.body()
    if not verify_signature(payload_data, signature, settings.GITHUB_WEBHOOK_SECRET):
        logger.warning(f"Rejected webhook delivery {delivery}: invalid signature")
        raise HTTPException(status_code=400, detail="Invalid GitHub signature")

    try:
        webhook_event = parser.parse(event, json.loads(payload_data), delivery)
    except (ValueError, ParseError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid webhook payload: {e}")

    try:
        await run_in_threadpool(
            runtime.event_dispatcher().dispatch, webhook_event, background_tasks
        )
    except Exception as e:
        logger.exception(f"Failed to handle {webhook_event}: {e}")
        raise HTTPException(status_code=500, detail="Failed to process webhook event")

    return {"status": "received"}
