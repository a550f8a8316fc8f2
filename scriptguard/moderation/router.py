"""Routes for the remediation workflow."""

from fastapi import APIRouter, HTTPException

from scriptguard.core.errors import RemediationError
from scriptguard.moderation.collaborator import get_generator
from scriptguard.moderation.schemas import RecheckRequest, RewriteRequest, RewriteResponse
from scriptguard.moderation.service import ScriptRewriter, ViolationReconciler
from scriptguard.rules.models import ViolationCheckResult
from scriptguard.rules.router import get_store

router = APIRouter(prefix="/moderation", tags=["Moderation"])


@router.post("/recheck", response_model=ViolationCheckResult)
async def recheck(request: RecheckRequest) -> ViolationCheckResult:
    """Re-check a script: local rules first, AI review when locally clean.

    Collaborator failures never surface here; the local verdict is returned.
    """
    reconciler = ViolationReconciler(get_store(), get_generator())
    return await reconciler.recheck(request.text)


@router.post("/rewrite", response_model=RewriteResponse)
async def rewrite(request: RewriteRequest) -> RewriteResponse:
    """Rewrite a script so that it complies with the active rules."""
    generator = get_generator()
    if generator is None:
        raise HTTPException(status_code=503, detail="AI collaborator is not configured")

    try:
        script = await ScriptRewriter(get_store(), generator).rewrite(
            request.script, request.violations
        )
    except RemediationError as e:
        raise HTTPException(status_code=502, detail=e.message)

    return RewriteResponse(script=script)
