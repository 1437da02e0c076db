from fastapi import FastAPI, Request
from starlette.responses import Response

BASELINE_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'Referrer-Policy': 'same-origin',
}


def install_security_headers(app: FastAPI) -> None:
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        for name, value in BASELINE_HEADERS.items():
            response.headers.setdefault(name, value)
        # Auth responses carry session cookies and account details.
        if request.url.path.startswith('/auth/'):
            response.headers['Cache-Control'] = 'no-store'
        return response
