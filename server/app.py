"""FastAPI web server for the patient registry."""
from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from patient_registry import __version__
from patient_registry.config import RegistryConfig, get_registry_config
from patient_registry.errors import (
    DatabaseNotReadyError,
    NotFoundError,
    QueryError,
    RegistryError,
    ValidationError,
)
from patient_registry.registry import RegistryContext
from patient_registry.services.query_console import export_filename, to_csv

logger = logging.getLogger(__name__)


# Request Models
class PatientForm(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    medications: Optional[str] = None
    insurance_provider: Optional[str] = None
    insurance_policy_number: Optional[str] = None


class QueryRequest(BaseModel):
    sql: str
    params: Optional[list[Any]] = None


_ERROR_STATUS: dict[type[RegistryError], tuple[int, str]] = {
    ValidationError: (422, "Validation Error"),
    NotFoundError: (404, "Not Found"),
    QueryError: (400, "Query Error"),
    DatabaseNotReadyError: (503, "Database Unavailable"),
}


def get_registry(request: Request) -> RegistryContext:
    return request.app.state.registry


def create_app(
    config: Optional[RegistryConfig] = None,
    wait_for_database: bool = False,
    watch_changes: bool = True,
) -> FastAPI:
    """
    Build the app around one explicitly constructed registry context.

    The database initializes in the background unless *wait_for_database* is
    set; until it is ready every data route answers 503.
    """
    registry = RegistryContext(config or get_registry_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init = asyncio.create_task(registry.open(watch=watch_changes))
        if wait_for_database:
            await init
        logger.info(f"Server started - DB: {registry.config.db_path}")
        yield
        if not init.done():
            init.cancel()
        await registry.aclose()
        logger.info("Server shutting down")

    app = FastAPI(
        title="Patient Registry API",
        description="Patient registration, search and a raw SQL console",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError):
        status, title = 500, "Error"
        for cls, mapped in _ERROR_STATUS.items():
            if isinstance(exc, cls):
                status, title = mapped
                break
        return JSONResponse(status_code=status, content={"title": title, "detail": str(exc)})

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    @app.get("/api/status")
    async def get_status(registry: RegistryContext = Depends(get_registry)):
        """Database readiness; ``error`` is set when initialization failed."""
        return {
            "status": "ok",
            "database": registry.session.state.to_dict(),
            "sync": registry.view.to_dict(),
        }

    # -- Patients ----------------------------------------------------------------

    @app.get("/api/patients")
    async def list_patients(
        q: Optional[str] = None,
        registry: RegistryContext = Depends(get_registry),
    ):
        """List all patients with stats, or those matching ``q``."""
        registry.session.require_db()
        if q:
            patients = registry.patients.search(q)
            return {"count": len(patients), "patients": [p.to_dict() for p in patients]}
        if registry.view.loaded_at is None:
            registry.view.reload()
        if registry.view.error:
            raise QueryError(registry.view.error)
        return registry.view.snapshot.to_dict()

    @app.get("/api/patients/{patient_id}")
    async def get_patient(patient_id: str, registry: RegistryContext = Depends(get_registry)):
        return registry.patients.get(patient_id).to_dict()

    @app.post("/api/patients", status_code=201)
    async def register_patient(
        form: PatientForm, registry: RegistryContext = Depends(get_registry)
    ):
        patient = registry.patients.register(form.model_dump(exclude_unset=True))
        registry.view.reload()
        return {"status": "created", "patient": patient.to_dict()}

    @app.put("/api/patients/{patient_id}")
    async def update_patient(
        patient_id: str,
        form: PatientForm,
        registry: RegistryContext = Depends(get_registry),
    ):
        patient = registry.patients.update(patient_id, form.model_dump(exclude_unset=True))
        registry.view.reload()
        return {"status": "updated", "patient": patient.to_dict()}

    @app.delete("/api/patients/{patient_id}")
    async def delete_patient(patient_id: str, registry: RegistryContext = Depends(get_registry)):
        registry.patients.delete(patient_id)
        registry.view.reload()
        return {"status": "deleted", "id": patient_id}

    # -- Query console -----------------------------------------------------------

    @app.post("/api/query")
    async def execute_query(body: QueryRequest, registry: RegistryContext = Depends(get_registry)):
        result = registry.console.execute(body.sql, body.params)
        if result.changes:
            registry.view.reload()
        return result.to_dict()

    @app.post("/api/query/export")
    async def export_query(body: QueryRequest, registry: RegistryContext = Depends(get_registry)):
        result = registry.console.execute(body.sql, body.params)
        return Response(
            content=to_csv(result),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
        )

    @app.get("/api/query/history")
    async def query_history(registry: RegistryContext = Depends(get_registry)):
        history = registry.console.history()
        return {"count": len(history), "history": history}

    @app.delete("/api/query/history")
    async def clear_query_history(registry: RegistryContext = Depends(get_registry)):
        registry.console.clear_history()
        return {"status": "cleared"}

    @app.get("/api/query/samples")
    async def query_samples(registry: RegistryContext = Depends(get_registry)):
        return {"samples": registry.console.samples}


app = create_app()


if __name__ == "__main__":
    import uvicorn
    from patient_registry.config import get_server_config

    server = get_server_config()
    uvicorn.run("app:app", host=server.host, port=server.port, reload=server.reload)
