"""
Workflow Builder Backend - FastAPI Application

This is the main entry point for the workflow editing backend.
It provides:
- REST API for workflow operations (nodes, connections, triggers, undo/redo)
- Validation, auto-fix and tree restructuring endpoints
- WebSocket endpoint for real-time updates
- CORS configuration for local frontend development
"""
from contextlib import asynccontextmanager
from typing import Any, Optional
import asyncio
import logging

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workflow_core.actions import ACTION_TYPES
from workflow_core.analysis import summarize_workflow
from workflow_core.errors import NodeNotFoundError, TriggerNotFoundError, WorkflowError
from workflow_core.models import (
    ConditionOperator,
    DelayUnit,
    NodeType,
    ThrottleScope,
    ThrottleTarget,
    Workflow,
    parse_node,
)
from workflow_core.restructure import DropInstruction
from workflow_core.validation import validation_summary

from .config import Settings, get_settings
from .logging import configure_logging
from .models import (
    AddTriggerRequest,
    CreateConnectionRequest,
    CreateNodeRequest,
    DeleteConnectionRequest,
    MoveNodeRequest,
    NewWorkflowRequest,
    ReorderTriggersRequest,
    UpdateNodeRequest,
    UpdateThrottleRequest,
)
from .persistence import JsonWorkflowStore, WorkflowNotFoundError
from .session import WorkflowSession
from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    store = JsonWorkflowStore(settings.storage_dir)
    session = WorkflowSession(
        store=store,
        max_history=settings.max_history,
        autosave_delay=settings.autosave_delay_seconds if settings.autosave_enabled else None,
    )
    ws_manager = WebSocketManager()

    # --- Async change notification ---
    # Bridge between sync session callbacks and async WebSocket broadcasts

    change_event = asyncio.Event()
    save_events: asyncio.Queue = asyncio.Queue()

    session.on_change(change_event.set)
    session.on_save(lambda workflow_id: save_events.put_nowait(("saved", workflow_id)))
    session.on_save_error(lambda error: save_events.put_nowait(("failed", str(error))))

    async def change_broadcaster():
        """Background task that broadcasts changes to WebSocket clients."""
        while True:
            await change_event.wait()
            change_event.clear()
            workflow_id = session.workflow.id if session.workflow else None
            await ws_manager.notify_workflow_updated(workflow_id)

    async def save_broadcaster():
        while True:
            kind, value = await save_events.get()
            if kind == "saved":
                await ws_manager.notify_workflow_saved(value)
            else:
                await ws_manager.notify_save_failed(value)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan handler for startup/shutdown tasks."""
        tasks = [
            asyncio.create_task(change_broadcaster()),
            asyncio.create_task(save_broadcaster()),
        ]
        logger.info("Workflow backend started", extra={"storage_dir": str(store.directory)})

        yield

        await session.flush_autosave()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    app = FastAPI(
        title="Workflow Builder API",
        description="Backend API for the automation workflow builder",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session = session
    app.state.ws_manager = ws_manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Error mapping ---

    @app.exception_handler(NodeNotFoundError)
    @app.exception_handler(TriggerNotFoundError)
    @app.exception_handler(WorkflowNotFoundError)
    async def not_found_handler(request: Request, exc: WorkflowError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(WorkflowError)
    @app.exception_handler(ValueError)
    async def bad_request_handler(request: Request, exc: Exception):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    def require_workflow() -> Workflow:
        if session.workflow is None:
            raise HTTPException(status_code=400, detail="No workflow open")
        return session.workflow

    # --- Health Check ---

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok", "connections": ws_manager.connection_count}

    # --- Workflow State ---

    @app.get("/api/workflow")
    async def get_workflow():
        """Get the current workflow state."""
        return session.get_state()

    @app.post("/api/workflow/new")
    async def new_workflow(request: NewWorkflowRequest):
        """Create a new workflow with a start and an end node."""
        workflow = session.new_workflow(name=request.name)
        return {"success": True, "workflow": workflow.to_json_dict()}

    @app.post("/api/workflow/save")
    async def save_workflow():
        require_workflow()
        workflow_id = session.save()
        return {"success": True, "workflowId": workflow_id}

    @app.post("/api/workflow/close")
    async def close_workflow():
        session.close()
        return {"success": True}

    @app.get("/api/workflow/json")
    async def export_workflow():
        """Export the open workflow as a JSON snapshot."""
        return require_workflow().to_json_dict()

    @app.put("/api/workflow/json")
    async def import_workflow(data: dict[str, Any]):
        """Replace the open workflow's content with an imported snapshot."""
        require_workflow()
        workflow = session.replace_workflow(Workflow.from_json_dict(data))
        return {"success": True, "workflow": workflow.to_json_dict()}

    # --- Stored Workflows ---

    @app.get("/api/workflows")
    async def list_workflows():
        return {"success": True, "workflows": store.list_workflows()}

    @app.post("/api/workflows/{workflow_id}/open")
    async def open_workflow(workflow_id: str):
        workflow = session.open_workflow(workflow_id)
        return {"success": True, "workflow": workflow.to_json_dict()}

    @app.delete("/api/workflows/{workflow_id}")
    async def delete_workflow(workflow_id: str):
        if session.workflow is not None and session.workflow.id == workflow_id:
            raise HTTPException(status_code=400, detail="Cannot delete the open workflow")
        if not store.delete(workflow_id):
            raise WorkflowNotFoundError(workflow_id)
        return {"success": True}

    # --- Undo/Redo ---

    @app.post("/api/undo")
    async def undo():
        workflow = session.undo()
        if workflow:
            return {"success": True, "workflow": workflow.to_json_dict()}
        return {"success": False, "message": "Nothing to undo"}

    @app.post("/api/redo")
    async def redo():
        workflow = session.redo()
        if workflow:
            return {"success": True, "workflow": workflow.to_json_dict()}
        return {"success": False, "message": "Nothing to redo"}

    # --- Node Operations ---

    @app.post("/api/nodes")
    async def create_node(request: CreateNodeRequest):
        """Create a node, optionally inserted into the tree after another node."""
        workflow = require_workflow()
        if request.type == NodeType.START and workflow.start_node() is not None:
            raise HTTPException(status_code=400, detail="Workflow already has a start node")
        node = parse_node({
            "type": request.type.value,
            "position": _dump(request.position),
            "data": request.data,
        })
        if request.after_node_id:
            session.insert_activity_after(request.after_node_id, node)
        else:
            session.add_node(node)
        return {"success": True, "node": _dump(node)}

    @app.get("/api/nodes/{node_id}")
    async def get_node(node_id: str):
        node = require_workflow().get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return {"success": True, "node": _dump(node)}

    @app.patch("/api/nodes/{node_id}")
    async def update_node(node_id: str, request: UpdateNodeRequest):
        """Update a node's data and/or canvas position."""
        require_workflow()
        node = session.graph.require_node(node_id)
        if request.data:
            node = session.update_node_data(node_id, request.data)
        if request.position is not None:
            node = session.move_position(node_id, request.position)
        return {"success": True, "node": _dump(node)}

    @app.delete("/api/nodes/{node_id}")
    async def delete_node(node_id: str):
        """Delete a node; its parent is relinked to its children where unambiguous."""
        require_workflow()
        session.delete_node(node_id)
        return {"success": True}

    # --- Connection Operations ---

    @app.post("/api/connections")
    async def create_connection(request: CreateConnectionRequest):
        require_workflow()
        connection = session.connect(request.source_id, request.target_id, request.source_handle)
        return {"success": True, "connection": _dump(connection)}

    @app.post("/api/connections/remove")
    async def remove_connections(request: DeleteConnectionRequest):
        """Remove by connection id, or every connection between source and target."""
        require_workflow()
        removed = session.disconnect(request.source_id, request.target_id, request.connection_id)
        return {"success": True, "removed": len(removed)}

    @app.delete("/api/connections/{connection_id}")
    async def delete_connection(connection_id: str):
        require_workflow()
        removed = session.disconnect(connection_id=connection_id)
        if not removed:
            raise HTTPException(status_code=404, detail="Connection not found")
        return {"success": True}

    # --- Tree Restructuring ---

    @app.post("/api/tree/move")
    async def move_in_tree(request: MoveNodeRequest):
        """Apply a drag-and-drop from the tree view. Invalid moves change nothing."""
        require_workflow()
        result = session.move_in_tree(
            request.dragged_node_id,
            DropInstruction(
                target_node_id=request.target_node_id,
                position=request.position,
                branch_type=request.branch_type,
            ),
        )
        return {
            "success": result.applied,
            "reason": result.reason,
            "connections": [_dump(c) for c in result.connections],
        }

    # --- Triggers ---

    @app.post("/api/triggers")
    async def add_trigger(request: AddTriggerRequest):
        require_workflow()
        events = session.add_trigger_event(request.item_type, request.trigger_event, request.throttle)
        return {"success": True, "triggerEvents": [_dump(e) for e in events]}

    @app.delete("/api/triggers/{event_id}")
    async def remove_trigger(event_id: str):
        require_workflow()
        events = session.remove_trigger_event(event_id)
        return {"success": True, "triggerEvents": [_dump(e) for e in events]}

    @app.put("/api/triggers/order")
    async def reorder_triggers(request: ReorderTriggersRequest):
        require_workflow()
        events = session.reorder_trigger_events(request.ordered_ids)
        return {"success": True, "triggerEvents": [_dump(e) for e in events]}

    @app.post("/api/triggers/reset-throttles")
    async def reset_throttles():
        """Bump every throttle's version and resetAt so cached executions are ignored."""
        require_workflow()
        events = session.reset_throttles()
        return {"success": True, "triggerEvents": [_dump(e) for e in events]}

    @app.patch("/api/triggers/{event_id}/throttle")
    async def update_throttle(event_id: str, request: UpdateThrottleRequest):
        require_workflow()
        events = session.update_trigger_throttle(event_id, request.throttle)
        return {"success": True, "triggerEvents": [_dump(e) for e in events]}

    # --- Analysis & Validation ---

    @app.get("/api/workflow/validate")
    async def validate_current_workflow():
        """Validate the open workflow. Returns errors, warnings and a summary."""
        require_workflow()
        result = session.validate()
        return {
            "success": True,
            **result.to_dict(),
            "summary": validation_summary(result),
        }

    @app.post("/api/workflow/autofix")
    async def autofix_current_workflow():
        """Apply every fixable issue, then re-validate."""
        require_workflow()
        fixes = session.apply_auto_fixes()
        result = session.validate()
        return {
            "success": True,
            "fixedCount": fixes.fixed_count,
            "validation": result.to_dict(),
        }

    @app.get("/api/workflow/summary")
    async def summarize_current_workflow():
        summary = summarize_workflow(require_workflow())
        return {"success": True, "summary": summary.to_dict()}

    # --- Enums for Frontend ---

    @app.get("/api/enums/node-types")
    async def get_node_types():
        return {"types": [t.value for t in NodeType]}

    @app.get("/api/enums/operators")
    async def get_operators():
        return {"operators": [o.value for o in ConditionOperator]}

    @app.get("/api/enums/delay-units")
    async def get_delay_units():
        return {"units": [u.value for u in DelayUnit]}

    @app.get("/api/enums/throttle")
    async def get_throttle_options():
        return {
            "scopes": [s.value for s in ThrottleScope],
            "targets": [t.value for t in ThrottleTarget],
        }

    @app.get("/api/enums/actions")
    async def get_action_types():
        return {
            "actions": [
                {"value": value, "label": label, "category": category}
                for value, label, category in ACTION_TYPES
            ]
        }

    # --- WebSocket ---

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for real-time updates.

        Clients connect here to receive workflow_updated events.
        """
        await ws_manager.connect(websocket)
        try:
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await ws_manager.send(websocket, {"type": "pong"})
        except WebSocketDisconnect:
            pass
        finally:
            await ws_manager.disconnect(websocket)

    return app


app = create_app()


def run():
    """Run the backend with uvicorn."""
    import uvicorn

    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
