"""
App-association files for the short domain.

iOS and Android only hand a https:// link to an installed app when the
domain vouches for it here. Values come from settings.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.config import get_settings

router = APIRouter(prefix="/.well-known", tags=["well-known"])


@router.get("/apple-app-site-association")
async def apple_app_site_association():
    settings = get_settings()
    body = {
        "applinks": {
            "apps": [],
            "details": [
                {"appID": app_id, "paths": settings.ios_link_paths}
                for app_id in settings.ios_app_ids
            ],
        },
    }
    # Served without an extension, so the content type has to be explicit
    return JSONResponse(content=body, media_type="application/json")


@router.get("/assetlinks.json")
async def assetlinks():
    settings = get_settings()
    return [
        {
            "relation": ["delegate_permission/common.handle_all_urls"],
            "target": {
                "namespace": "android_app",
                "package_name": settings.android_package_name,
                "sha256_cert_fingerprints": settings.android_sha256_cert_fingerprints,
            },
        }
    ]
