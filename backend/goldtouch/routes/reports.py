from datetime import date
from flask import Blueprint, Response, request
from goldtouch.decorators.auth import require_section
from goldtouch.services import reports
from goldtouch.services.reports import filters_from_args, resolve_range, validate_granularity

rpt_bp = Blueprint('reports', __name__)


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        body,
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
        content_type='text/csv; charset=utf-8',
    )


@rpt_bp.get('/summary')
@require_section('reports')
def summary():
    start, end = resolve_range(request.args.get('from'), request.args.get('to'), reports.EPOCH, date.today())
    return reports.summary(start, end, filters_from_args(request.args))


@rpt_bp.get('/timeseries')
@require_section('reports')
def timeseries():
    start, end = resolve_range(request.args.get('from'), request.args.get('to'))
    granularity = validate_granularity(request.args.get('granularity'))
    return {'data': reports.timeseries(start, end, granularity, filters_from_args(request.args))}


@rpt_bp.get('/breakdown')
@require_section('reports')
def breakdown():
    start, end = resolve_range(request.args.get('from'), request.args.get('to'))
    granularity = validate_granularity(request.args.get('granularity'))
    return {'data': reports.timeseries_breakdown(start, end, granularity, filters_from_args(request.args))}


@rpt_bp.get('/export.csv')
@require_section('reports')
def export_csv():
    today = date.today()
    start, end = resolve_range(request.args.get('from'), request.args.get('to'), date(today.year, 1, 1), today)
    granularity = validate_granularity(request.args.get('granularity'), default='month')
    buckets = reports.timeseries(start, end, granularity, filters_from_args(request.args))
    return _csv_response(reports.timeseries_csv(buckets), f'report_{start.isoformat()}_{end.isoformat()}.csv')


@rpt_bp.get('/breakdown.csv')
@require_section('reports')
def breakdown_csv():
    today = date.today()
    start, end = resolve_range(request.args.get('from'), request.args.get('to'), date(today.year, 1, 1), today)
    granularity = validate_granularity(request.args.get('granularity'), default='month')
    filters = filters_from_args(request.args)
    buckets = reports.timeseries_breakdown(start, end, granularity, filters)
    return _csv_response(reports.breakdown_csv(buckets, filters),
                         f'breakdown_{start.isoformat()}_{end.isoformat()}.csv')
