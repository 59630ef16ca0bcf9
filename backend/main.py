import logging

from fastapi import FastAPI, HTTPException

from export_source import ExportReadError
from models import ParseRequest
from repo_jobs import JobRepo
from service_parse import JobLimitError, ParseService
from settings import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

app = FastAPI(title="Health Export Parser")

# Instantiate the repo + service here so the routes remain thin and
# replaceable for testing.
repo = JobRepo()
svc = ParseService(repo)


def _mode(req: ParseRequest):
    return req.mode.value if req.mode else None


@app.get("/health")
def health():
    return {"ok": True}


@app.post("/parse")
def parse(req: ParseRequest):
    try:
        return {"workouts": svc.parse(req.path, _mode(req))}
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExportReadError as e:
        raise HTTPException(status_code=500, detail=f"Read failed: {e}")
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Parse failed: {e}")


@app.post("/jobs")
def start_job(req: ParseRequest):
    try:
        return {"job_id": svc.start_job(req.path, _mode(req))}
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except JobLimitError as e:
        raise HTTPException(status_code=429, detail=str(e))


@app.get("/jobs/{job_id}")
def job_status(job_id: str):
    try:
        return svc.job_status(job_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown job: {job_id}")


@app.delete("/jobs/{job_id}")
def cancel_job(job_id: str):
    try:
        svc.cancel_job(job_id)
        return {"cancelled": True}
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown job: {job_id}")
