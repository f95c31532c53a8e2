"""
FastAPI application for Care Feedback.

Serves the chat relay, session persistence and the staff dashboard API.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import chat_router, dashboard_router, session_router
from config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Care Feedback API",
    description="Patient feedback and nursing check-in chat with staff dashboard",
    version="1.0.0",
)

# CORS middleware for the Streamlit UIs
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict to specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(chat_router)
app.include_router(session_router)
app.include_router(dashboard_router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "care_feedback"}


@app.get("/")
def root():
    """Root endpoint with API info."""
    return {
        "service": "Care Feedback API",
        "version": "1.0.0",
        "endpoints": {
            "chat": "/v1/feedback-chat",
            "sessions": "/v1/sessions",
            "dashboard": "/v1/dashboard",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
    )
