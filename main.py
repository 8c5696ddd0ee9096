from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from fastapi import BackgroundTasks, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from captioning_utils import OracleError, describe_image, normalize_service, rewrite_text
from image_ingestion import ingest_files
from prompt_modifier import (
    AspectRatioOption,
    ConsistencyOption,
    FacialExpressionOption,
    FocalLengthOption,
    ModificationRequest,
    ModificationType,
    PromptValidationError,
    QualityOption,
    StyleOption,
    submit_modification,
)
from reverse_prompt import ReversePromptWorkflow

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).parent
ENV_PATH = BASE_DIR / ".env"
TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"


def load_env_file() -> tuple[dict[str, str], bool]:
    if not ENV_PATH.exists():
        return {}, False
    values: dict[str, str] = {}
    for line in ENV_PATH.read_text().splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        values[key.strip()] = value.strip()
    return values, True


def update_env_file(updates: dict[str, str]) -> None:
    existing_lines = []
    if ENV_PATH.exists():
        existing_lines = ENV_PATH.read_text().splitlines()

    remaining = {key: value for key, value in updates.items()}
    output_lines = []
    for line in existing_lines:
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            output_lines.append(line)
            continue
        key, _ = stripped.split("=", 1)
        key = key.strip()
        if key in remaining:
            value = remaining.pop(key)
            if value:
                output_lines.append(f"{key}={value}")
            continue
        output_lines.append(line)

    for key, value in remaining.items():
        if value:
            output_lines.append(f"{key}={value}")

    if output_lines:
        ENV_PATH.write_text("\n".join(output_lines).strip() + "\n")


def _clean_env_value(value: str) -> str:
    cleaned = value.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in {"'", '"'}:
        return cleaned[1:-1]
    return cleaned


def _env_value(env_values: dict[str, str], *keys: str) -> str:
    # .env first, then the process environment.
    for key in keys:
        value = env_values.get(key) or os.environ.get(key)
        if value:
            return _clean_env_value(value)
    return ""


def _selected_service(env_values: dict[str, str]) -> str:
    return normalize_service(_env_value(env_values, "PROMPT_SERVICE"))


def _resolve_service_key(service: str, env_values: dict[str, str]) -> str:
    service = normalize_service(service)
    if service == "grok":
        return _env_value(env_values, "GROK_API_KEY")
    if service == "openai":
        return _env_value(env_values, "OPENAI_API_KEY")
    return _env_value(env_values, "GEMINI_API_KEY", "GOOGLE_AI_STUDIO_API")


async def describe_with_configured_service(content: str, mime_type: str) -> str:
    env_values, _ = load_env_file()
    service = _selected_service(env_values)
    return await describe_image(
        content,
        mime_type,
        api_key=_resolve_service_key(service, env_values),
        service=service,
        model=_env_value(env_values, "PROMPT_MODEL") or None,
    )


async def rewrite_with_configured_service(system_instruction: str, user_instruction: str) -> str:
    env_values, _ = load_env_file()
    service = _selected_service(env_values)
    return await rewrite_text(
        system_instruction,
        user_instruction,
        api_key=_resolve_service_key(service, env_values),
        service=service,
        model=_env_value(env_values, "PROMPT_MODEL") or None,
    )


app = FastAPI()
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

app.state.workflow = ReversePromptWorkflow(describe=describe_with_configured_service)
app.state.rewrite = rewrite_with_configured_service


def _workflow(request: Request) -> ReversePromptWorkflow:
    return request.app.state.workflow


def _view_state(workflow: ReversePromptWorkflow) -> dict:
    return {
        "records": [record.to_dict() for record in workflow.records],
        "is_generating_all": workflow.is_generating_all,
    }


@app.get("/", response_class=HTMLResponse)
async def index(request: Request) -> HTMLResponse:
    env_values, _ = load_env_file()
    return templates.TemplateResponse(
        request,
        "index.html",
        {"selected_service": _selected_service(env_values)},
    )


@app.post("/settings")
async def update_settings(request: Request) -> JSONResponse:
    form = await request.form()
    service = normalize_service(form.get("service"))
    api_key = (form.get("api_key") or "").strip()

    updates = {"PROMPT_SERVICE": service}
    # A blank key only switches service; the stored key stays.
    if api_key:
        if service == "grok":
            updates["GROK_API_KEY"] = api_key
        elif service == "openai":
            updates["OPENAI_API_KEY"] = api_key
        else:
            updates["GEMINI_API_KEY"] = api_key

    update_env_file(updates)
    for key, value in updates.items():
        if value:
            os.environ[key] = value
    logger.info("Settings updated for service %s", service)
    return JSONResponse({"status": "ok", "service": service})


## Reverse prompt


@app.get("/reverse-prompt", response_class=HTMLResponse)
async def reverse_prompt_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "reverse_prompt.html",
        _view_state(_workflow(request)),
    )


@app.get("/api/reverse-prompt/records")
async def list_records(request: Request) -> JSONResponse:
    return JSONResponse(_view_state(_workflow(request)))


@app.post("/api/reverse-prompt/records")
async def upload_images(request: Request, files: List[UploadFile] = File(...)) -> JSONResponse:
    workflow = _workflow(request)
    images = await ingest_files(files)
    added = workflow.add_images(images)
    skipped = len(files) - len(images)
    if skipped:
        logger.info("Upload skipped %d of %d files", skipped, len(files))
    return JSONResponse({**_view_state(workflow), "added": len(added), "skipped": skipped})


@app.post("/api/reverse-prompt/records/{record_id}/generate")
async def generate_record(request: Request, record_id: str) -> JSONResponse:
    workflow = _workflow(request)
    if workflow.get(record_id) is None:
        raise HTTPException(status_code=404, detail="Image not found.")

    record = await workflow.generate(record_id) or workflow.get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Image was removed.")
    return JSONResponse(record.to_dict())


@app.post("/api/reverse-prompt/generate-all")
async def generate_all_records(request: Request, background_tasks: BackgroundTasks) -> JSONResponse:
    workflow = _workflow(request)
    if workflow.is_generating_all:
        return JSONResponse({"status": "busy"})
    background_tasks.add_task(workflow.generate_all)
    return JSONResponse({"status": "started"})


@app.delete("/api/reverse-prompt/records/{record_id}")
async def remove_record(request: Request, record_id: str) -> JSONResponse:
    workflow = _workflow(request)
    if not workflow.remove(record_id):
        raise HTTPException(status_code=404, detail="Image not found.")
    return JSONResponse(_view_state(workflow))


@app.delete("/api/reverse-prompt/records")
async def clear_records(request: Request) -> JSONResponse:
    workflow = _workflow(request)
    workflow.clear_all()
    return JSONResponse(_view_state(workflow))


## Prompt modifier


@app.get("/modify-prompt", response_class=HTMLResponse)
async def modify_prompt_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "modify_prompt.html", {})


@app.post("/modify-prompt")
async def modify_prompt_generate(
    request: Request,
    original_prompt: str = Form(""),
    modification_type: ModificationType = Form(ModificationType.NO_SPECIFIC),
    specific_instruction: str = Form(""),
    quality: QualityOption = Form(QualityOption.EIGHT_K_CINEMATIC_LIGHTING),
    aspect_ratio: AspectRatioOption = Form(AspectRatioOption.NONE),
    style: StyleOption = Form(StyleOption.NONE),
    focal_length: FocalLengthOption = Form(FocalLengthOption.NONE),
    facial_expression: FacialExpressionOption = Form(FacialExpressionOption.NONE),
    consistency: ConsistencyOption = Form(ConsistencyOption.NONE),
) -> JSONResponse:
    modification = ModificationRequest(
        original_prompt=original_prompt,
        modification_type=modification_type,
        specific_instruction=specific_instruction.strip(),
        quality=quality,
        aspect_ratio=aspect_ratio,
        style=style,
        focal_length=focal_length,
        facial_expression=facial_expression,
        consistency=consistency,
    )

    try:
        prompt = await submit_modification(modification, request.app.state.rewrite)
    except PromptValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except OracleError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return JSONResponse({"prompt": prompt})
