from fastapi import APIRouter

router = APIRouter()

API_DESCRIPTION = {
    "name": "KwachaNow API",
    "version": "1.0.0",
    "description": "African Economic & Cultural Platform API",
    "endpoints": {
        "auth": {
            "POST /api/auth/register": "Register new user",
            "POST /api/auth/login": "User login",
            "POST /api/auth/logout": "User logout",
            "GET /api/auth/profile": "Get user profile",
        },
        "chat": {
            "POST /api/chat": "AI chat functionality",
            "GET /api/chat/sessions": "Get chat sessions",
            "GET /api/chat/sessions/:id": "Get specific chat session",
        },
        "news": {
            "GET /api/news": "Get news articles",
            "GET /api/news?country=:code": "Get country-specific news",
        },
        "countries": {
            "GET /api/countries": "List all African countries",
            "GET /api/countries/:code": "Get specific country data",
            "GET /api/countries/:code/economic": "Get economic data",
            "GET /api/countries/:code/cultural": "Get cultural data",
        },
        "users": {
            "GET /api/users/profile": "Get user profile",
            "PUT /api/users/profile": "Update user profile",
            "GET /api/users/saved": "Get saved content",
            "POST /api/users/save": "Save content",
        },
    },
}


@router.get("/api/docs")
async def api_docs():
    return API_DESCRIPTION
