import os

from fastapi import APIRouter, HTTPException

from .config_loader import ConfigLoader
from .connections import missing_child_suggestions, validate_connection
from .editor import EditorSession
from .engine import RuleEngine
from .models import (
    ApplyFixRequest,
    ConnectionCheck,
    ConnectionKindsRequest,
    ConnectionRequest,
    GraphAnalysis,
    GraphSnapshot,
    NodeAnalysis,
    NodeCreateRequest,
    NodeUpdateRequest,
)

router = APIRouter()

# Initialize loader and editing session
DEFAULT_PACKS_DIR = os.path.join(os.path.dirname(__file__), "knowledge", "packs")
PACKS_DIR = os.environ.get("CONFIGFLOW_PACKS_DIR", DEFAULT_PACKS_DIR)
loader = ConfigLoader(PACKS_DIR)
nodes, edges, rules = loader.load_all()
session = EditorSession(nodes, edges, rules)


def _reload_session_state():
    global nodes, edges, rules, session
    nodes, edges, rules = loader.load_all()
    session = EditorSession(nodes, edges, rules)


@router.get("/graph")
async def get_graph():
    snapshot = session.export_snapshot()
    snapshot["rules"] = session.rules.model_dump() if session.rules else None
    return snapshot


@router.get("/analysis", response_model=GraphAnalysis)
async def get_analysis():
    return session.analysis()


@router.get("/analysis/{node_id}", response_model=NodeAnalysis)
async def get_node_analysis(node_id: str):
    if node_id not in session.nodes:
        raise HTTPException(status_code=404, detail=f"Unknown node: {node_id}")
    return session.analyze_node(node_id)


@router.get("/nodes/{node_id}/suggestions")
async def get_child_suggestions(node_id: str):
    if node_id not in session.nodes:
        raise HTTPException(status_code=404, detail=f"Unknown node: {node_id}")
    engine = session.engine()
    missing = missing_child_suggestions(engine.nodes[node_id], engine.children_of(node_id))
    return [item._asdict() for item in missing]


@router.post("/analyze", response_model=GraphAnalysis)
async def analyze_snapshot(snapshot: GraphSnapshot):
    return RuleEngine(snapshot.nodes, snapshot.edges, snapshot.rules).analyze_graph()


@router.post("/connections/validate", response_model=ConnectionCheck)
async def check_connection(request: ConnectionKindsRequest):
    return validate_connection(request.source_kind, request.target_kind)


@router.post("/connections")
async def create_connection(request: ConnectionRequest):
    try:
        edge = session.connect(request.source, request.target)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"Unknown node: {e.args[0]}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"edge": edge.model_dump(), "total_issues": session.analysis().total_issues}


@router.post("/nodes")
async def create_node(request: NodeCreateRequest):
    try:
        if request.parent_id:
            node = session.auto_add_child(request.parent_id, request.label)
        else:
            node = session.add_node(request.kind, request.label)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"Unknown node: {e.args[0]}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return node


@router.patch("/nodes/{node_id}")
async def update_node(node_id: str, request: NodeUpdateRequest):
    try:
        return session.update_node(node_id, **request.model_dump(exclude_unset=True))
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown node: {node_id}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/nodes/{node_id}")
async def delete_node(node_id: str):
    try:
        session.delete_node(node_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown node: {node_id}")
    return {"status": "deleted", "node_id": node_id}


@router.post("/fixes", response_model=GraphAnalysis)
async def apply_fix(request: ApplyFixRequest):
    try:
        return session.apply_fix(request.fix)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown node: {request.fix.target_node_id}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/reload")
async def reload_graph():
    _reload_session_state()
    return {"status": "success", "node_count": len(session.nodes), "module_count": len(loader.modules)}
