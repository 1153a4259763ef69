"""HTML signup form."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from .config import Settings
from .dependencies import get_settings

router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse)
def signup_page(request: Request, settings: Settings = Depends(get_settings)):
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "resume_form.html",
        {"accept": ",".join(settings.allowed_resume_extensions_list)},
    )
