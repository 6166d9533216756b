"""
FastAPI Backend for the Build Auto-Fix Engine

Runs a container build, classifies failures, repairs the build context
and retries until the image builds or the attempt budget runs out.

API Structure:
- /api/autofix/sessions/* - Auto-fix sessions + SSE events
- /api/autofix/build-tool/status - Build tool preflight
- /api/health - Health check
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import HOST, PORT, CORS_ORIGINS, OPENAI_API_KEY
from routers import autofix

# Configure logging
logging.basicConfig(level=logging.INFO)

# Initialize FastAPI app
app = FastAPI(
    title="Build Auto-Fix API",
    description="Automatic remediation of failing container image builds",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(autofix.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Build Auto-Fix API",
        "version": "1.0.0",
        "endpoints": {
            "sessions": "/api/autofix/sessions",
            "events": "/api/autofix/sessions/{id}/events",
            "build_tool": "/api/autofix/build-tool/status"
        },
        "docs": "/docs"
    }


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "ai": "ready" if OPENAI_API_KEY else "placeholder-only"
    }


if __name__ == "__main__":
    import uvicorn

    print(f"""
    ╔════════════════════════════════════════════════════╗
    ║  Build Auto-Fix API                                ║
    ║  Build → Classify → Remediate → Retry              ║
    ╚════════════════════════════════════════════════════╝

    🚀 Starting server...
    📡 API: http://{HOST}:{PORT}
    📖 Docs: http://{HOST}:{PORT}/docs

    Endpoints:
    - POST /api/autofix/sessions - Start an auto-fix session
    - GET  /api/autofix/sessions/{{id}} - Session status and result
    - GET  /api/autofix/sessions/{{id}}/events - SSE event stream
    - POST /api/autofix/sessions/{{id}}/cancel - Cancel a session
    - GET  /api/autofix/build-tool/status - Docker preflight

    Press Ctrl+C to stop
    """)

    uvicorn.run(
        app,
        host=HOST,
        port=PORT,
        log_level="info"
    )
