# views/novels.py

import logging
import threading

from flask import Blueprint, current_app, jsonify, request

import config
from crawlers.novel_crawler import build_default_crawler
from database import get_db
from repositories.novels_repo import search_novels

LOGGER = logging.getLogger(__name__)

novels_bp = Blueprint('novels', __name__)

CRAWLER_EXTENSION_KEY = 'novel_crawler'


_crawler_init_lock = threading.Lock()


def get_crawler():
    """앱 프로세스당 하나의 크롤러 인스턴스를 반환합니다 (최초 호출 시 생성)."""
    crawler = current_app.extensions.get(CRAWLER_EXTENSION_KEY)
    if crawler is not None:
        return crawler
    with _crawler_init_lock:
        crawler = current_app.extensions.get(CRAWLER_EXTENSION_KEY)
        if crawler is None:
            crawler = build_default_crawler()
            current_app.extensions[CRAWLER_EXTENSION_KEY] = crawler
    return crawler


def _error_response(status_code: int, code: str, message: str):
    return (
        jsonify({'success': False, 'error': {'code': code, 'message': message}}),
        status_code,
    )


def _read_int_arg(name, default, *, minimum=0):
    raw = request.args.get(name)
    if raw is None or not str(raw).strip():
        return default
    value = int(str(raw).strip())
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


@novels_bp.route('/api/novels/crawl', methods=['POST'])
def start_crawl():
    """크롤링 작업을 백그라운드로 시작합니다. 이미 실행 중이면 아무것도 하지 않습니다."""
    try:
        start = _read_int_arg('start', 0)
        pages = _read_int_arg('pages', 5, minimum=1)
    except ValueError:
        return _error_response(400, 'INVALID_PARAMS', 'start and pages must be non-negative integers')

    future = get_crawler().start(start, pages)
    return jsonify({
        'started': future is not None,
        'start': start,
        'pages': pages,
    }), 202


@novels_bp.route('/api/novels/crawl/scheduled', methods=['POST'])
def start_scheduled_crawl():
    """cron 트리거용: 기본 페이지 수로 크롤링을 시작합니다. 실행 중이면 started=false."""
    crawler = get_crawler()
    future = crawler.start_scheduled()
    return jsonify({
        'started': future is not None,
        'start': 0,
        'pages': crawler.default_pages,
    }), 202


@novels_bp.route('/api/novels/crawl/status', methods=['GET'])
def crawl_status():
    crawler = get_crawler()
    last_report = crawler.last_report
    return jsonify({
        'running': crawler.is_running(),
        'last_report': last_report.to_dict() if last_report else None,
    })


@novels_bp.route('/api/novels/search', methods=['GET'])
def search():
    """제목/작가 부분 일치, 상태/분류 일치 조건으로 소설을 페이지 단위로 조회합니다."""
    try:
        page = _read_int_arg('page', 0)
        size = _read_int_arg('size', config.SEARCH_DEFAULT_PAGE_SIZE, minimum=1)
    except ValueError:
        return _error_response(400, 'INVALID_PARAMS', 'page and size must be integers')
    size = min(size, config.SEARCH_MAX_PAGE_SIZE)

    try:
        result = search_novels(
            get_db(),
            q=request.args.get('q'),
            author=request.args.get('author'),
            status=request.args.get('status'),
            category=request.args.get('category'),
            page=page,
            page_size=size,
        )
    except Exception:
        LOGGER.error("Novel search failed", exc_info=True)
        return _error_response(500, 'SEARCH_FAILED', 'internal error')
    return jsonify(result)
