from services.audit_worker.common.audit_builder import AuditBuilder
from services.audit_worker.context import AuditContext
from services.audit_worker.integrations.psi_api import fetch_pagespeed_insights, psi_report_ref
from services.audit_worker.schemas.audit import AuditRunResult

THRESHOLDS = {
    "LCP": (2500, 4000),
    "FID": (100, 300),
    "CLS": (0.1, 0.25),
}


def classify(value: float | None, metric: str) -> str:
    if value is None or metric not in THRESHOLDS:
        return "unknown"
    good, needs_improvement = THRESHOLDS[metric]
    if value <= good:
        return "good"
    if value <= needs_improvement:
        return "needs_improvement"
    return "poor"


def grade_metrics(metrics: dict) -> dict:
    lcp = metrics.get("LCP")
    fid = metrics.get("FID")
    cls = metrics.get("CLS")

    summary = {
        "LCP_ms": lcp,
        "FID_ms": fid,
        "CLS": cls,
        "LCP_grade": classify(lcp, "LCP"),
        "FID_grade": classify(fid, "FID"),
        "CLS_grade": classify(cls, "CLS"),
    }

    findings = []
    if summary["LCP_grade"] == "poor":
        findings.append({"code": "cwv_lcp_poor", "severity": "high", "details": {"value_ms": lcp}})
    if summary["FID_grade"] == "poor":
        findings.append({"code": "cwv_fid_poor", "severity": "high", "details": {"value_ms": fid}})
    if summary["CLS_grade"] == "poor":
        findings.append({"code": "cwv_cls_poor", "severity": "high", "details": {"value": cls}})

    return {"summary": summary, "findings": findings}


async def cwv_runner(url: str, context: AuditContext) -> AuditRunResult:
    data = await fetch_pagespeed_insights(url=url, strategy="mobile")
    if data is None:
        context.log.warning(f"PageSpeed Insights key not configured, no CWV data for {url}")
        return AuditRunResult(audit_result=None, full_audit_ref=psi_report_ref(url))

    return AuditRunResult(audit_result=grade_metrics(data["metrics"]), full_audit_ref=psi_report_ref(url))


cwv = AuditBuilder().with_runner(cwv_runner).build()
