"""Routes for administering and checking policy rules."""

from fastapi import APIRouter, HTTPException, Request, Response, status

from scriptguard.core.config import get_settings
from scriptguard.core.errors import RuleGenerationError
from scriptguard.moderation.collaborator import get_generator
from scriptguard.moderation.service import RuleGenerator
from scriptguard.rules.brief import build_brief
from scriptguard.rules.matcher import check_text
from scriptguard.rules.models import (
    NewRule,
    Rule,
    RuleCategory,
    RulesMetadata,
    RuleUpdate,
    ViolationCheckResult,
)
from scriptguard.rules.schemas import (
    BriefResponse,
    CheckRequest,
    ImportResponse,
    RulesListResponse,
)
from scriptguard.rules.store import RuleStore
from scriptguard.storage.kv import SqlKeyValueStore

router = APIRouter(prefix="/rules", tags=["Rules"])

# Global instance
_store: RuleStore | None = None


def get_store() -> RuleStore:
    """Get or create the rule store instance."""
    global _store
    if _store is None:
        settings = get_settings()
        _store = RuleStore(
            SqlKeyValueStore(),
            rules_key=settings.rules_storage_key,
            metadata_key=settings.metadata_storage_key,
        )
    return _store


@router.get("", response_model=RulesListResponse)
async def list_rules(
    category: RuleCategory | None = None,
    q: str | None = None,
) -> RulesListResponse:
    """List rules.

    Optionally filter by category and/or a search query.
    """
    store = get_store()

    if q:
        rules = store.search(q)
    else:
        rules = store.load()
    if category:
        rules = [rule for rule in rules if rule.category == category]

    return RulesListResponse(rules=rules, total=len(rules))


@router.post("", response_model=Rule, status_code=status.HTTP_201_CREATED)
async def create_rule(new_rule: NewRule) -> Rule:
    """Add a rule."""
    return get_store().add(new_rule)


@router.get("/metadata", response_model=RulesMetadata)
async def get_metadata() -> RulesMetadata:
    """Rule store metadata."""
    return get_store().get_metadata()


@router.get("/brief", response_model=BriefResponse)
async def get_brief() -> BriefResponse:
    """Policy brief compiled from the active rules."""
    rules = get_store().active_rules()
    return BriefResponse(brief=build_brief(rules), active_rules=len(rules))


@router.post("/check", response_model=ViolationCheckResult)
async def check(request: CheckRequest) -> ViolationCheckResult:
    """Check a text against the active rules (local only, no AI)."""
    return check_text(request.text, get_store().active_rules())


# =============================================================================
# Bulk Endpoints
# =============================================================================


@router.get("/export")
async def export_rules() -> Response:
    """Download all rules and metadata as a JSON backup."""
    return Response(
        content=get_store().export_rules(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="rules_backup.json"'},
    )


@router.post("/import", response_model=ImportResponse)
async def import_rules(request: Request) -> ImportResponse:
    """Replace all rules with an export document (the raw request body)."""
    store = get_store()
    body = await request.body()
    try:
        blob = body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Rules document is not UTF-8 text")
    if not store.import_rules(blob):
        raise HTTPException(status_code=400, detail="Invalid rules document")
    return ImportResponse(imported=True, total=len(store.load()))


@router.post("/reset", response_model=RulesMetadata)
async def reset_rules() -> RulesMetadata:
    """Restore the built-in default rules."""
    store = get_store()
    store.reset_to_default()
    return store.get_metadata()


@router.post("/generate", response_model=RulesListResponse)
async def generate_rules() -> RulesListResponse:
    """Ask the AI collaborator for new rules and merge them in."""
    generator = get_generator()
    if generator is None:
        raise HTTPException(status_code=503, detail="AI collaborator is not configured")

    try:
        rules = await RuleGenerator(get_store(), generator).generate()
    except RuleGenerationError as e:
        raise HTTPException(status_code=502, detail=e.message)

    return RulesListResponse(rules=rules, total=len(rules))


# =============================================================================
# Single Rule Endpoints
# =============================================================================


@router.get("/{rule_id}", response_model=Rule)
async def get_rule(rule_id: str) -> Rule:
    """Get a single rule."""
    rule = get_store().get(rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule not found: {rule_id}")
    return rule


@router.patch("/{rule_id}", response_model=Rule)
async def update_rule(rule_id: str, changes: RuleUpdate) -> Rule:
    """Apply partial changes to a rule."""
    rule = get_store().update(rule_id, changes)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule not found: {rule_id}")
    return rule


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(rule_id: str) -> Response:
    """Delete a rule."""
    if not get_store().delete(rule_id):
        raise HTTPException(status_code=404, detail=f"Rule not found: {rule_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
