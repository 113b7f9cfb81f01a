from flask import Blueprint, jsonify, request

from cafepos.decorators import require_auth, require_permission
from cafepos.services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/stats")
@require_auth
@require_permission("VIEW_REPORTS")
def stats_report():
    return jsonify(reporting_service.order_stats()), 200


@reports_bp.get("/weekly-sales")
@require_auth
@require_permission("VIEW_REPORTS")
def weekly_sales_report():
    return jsonify({"days": reporting_service.weekly_sales()}), 200


@reports_bp.get("/categories")
@require_auth
@require_permission("VIEW_REPORTS")
def category_sales_report():
    return jsonify({"categories": reporting_service.category_sales()}), 200


@reports_bp.get("/shifts")
@require_auth
@require_permission("EXPORT_REPORTS")
def shift_report():
    try:
        report = reporting_service.shift_report(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
