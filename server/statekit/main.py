from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from statekit.routers import files, transform

app = FastAPI(
    title="statekit",
    description="API for rewriting createClass factories into reactive modules.",
    version="0.1.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for local development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include Routers
app.include_router(transform.router)
app.include_router(files.router)


@app.get("/api-status")
async def root():
    return {"message": "statekit server is running. Visit /docs for API documentation."}
