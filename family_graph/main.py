import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from family_graph.config import settings
from family_graph.database import Base, engine
from family_graph.core.errors import KinshipError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("family_graph")

# Import models so SQLAlchemy registers tables
from family_graph.models import (  # noqa: E402
    user,
    family,
    family_user,
    family_member,
    family_join_request,
)

# Routers
from family_graph.routers import (  # noqa: E402
    family_router,
    member_router,
    relationship_router,
    tree_router,
    smart_link_router,
    join_request_router,
)

# -----------------------
# CREATE APP
# -----------------------
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Family member records and the kinship graph between them.",
    version="1.0.0",
)

# -----------------------
# CORS
# -----------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # allow all during development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------
# DATABASE TABLES
# -----------------------
Base.metadata.create_all(bind=engine)


# -----------------------
# ERRORS
# -----------------------
@app.exception_handler(KinshipError)
async def kinship_error_handler(request: Request, exc: KinshipError):
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# -----------------------
# ROUTES
# -----------------------
app.include_router(family_router.router)
app.include_router(member_router.router)
app.include_router(relationship_router.router)
app.include_router(tree_router.router)
app.include_router(smart_link_router.router)
app.include_router(join_request_router.router)


# -----------------------
# HEALTH CHECK
# -----------------------
@app.get("/")
def root():
    return {"message": "Family Graph API is running!"}
