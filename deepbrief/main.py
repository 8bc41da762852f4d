from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from deepbrief.api.routes import jobs, templates
from deepbrief.config import settings
from deepbrief.research.errors import ResearchJobError
from deepbrief.services import logger as log_service
from deepbrief.services.job_store import close_job_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    yield
    # Shutdown
    await close_job_store()


app = FastAPI(
    title="DeepBrief",
    description="Asynchronous deep research jobs for campaign strategy",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ResearchJobError)
async def research_job_error_handler(request: Request, exc: ResearchJobError):
    if exc.status_code >= 500:
        log_service.logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, "code": exc.code, **exc.details()},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    violations = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"], "kind": err["type"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "Invalid request: " + ", ".join(v["field"] for v in violations),
            "code": "invalid_request",
            "violations": violations,
        },
    )


# Routes
app.include_router(templates.router)
app.include_router(jobs.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "deepbrief"}
