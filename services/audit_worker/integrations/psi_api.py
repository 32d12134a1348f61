from urllib.parse import urlencode

import httpx

from services.audit_worker.config import settings

PSI_API_URL = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"


def psi_report_ref(url: str, strategy: str = "mobile") -> str:
    return f"{PSI_API_URL}?{urlencode({'url': url, 'strategy': strategy})}"


def _numeric(audits: dict, name: str) -> float | None:
    value = (audits.get(name) or {}).get("numericValue")
    return value if isinstance(value, (int, float)) else None


async def fetch_pagespeed_insights(url: str, strategy: str = "mobile") -> dict | None:
    if not settings.psi_api_key:
        return None

    params = {"url": url, "strategy": strategy, "key": settings.psi_api_key}
    async with httpx.AsyncClient(timeout=15.0, headers={"User-Agent": settings.user_agent}) as client:
        r = await client.get(PSI_API_URL, params=params)
        r.raise_for_status()
        j = r.json()

    audits = (((j.get("lighthouseResult") or {}).get("audits")) or {})
    lcp = _numeric(audits, "largest-contentful-paint")
    fid = _numeric(audits, "max-potential-fid")
    cls = _numeric(audits, "cumulative-layout-shift")

    return {
        "metrics": {
            "LCP": int(lcp) if lcp is not None else None,
            "FID": int(fid) if fid is not None else None,
            "CLS": float(cls) if cls is not None else None,
        },
        "raw": j,
    }
