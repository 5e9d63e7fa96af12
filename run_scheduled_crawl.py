# run_scheduled_crawl.py
#
# Hourly cron entry point (e.g. "0 * * * *  python run_scheduled_crawl.py").
# The crawl itself runs inside the web process, so its single-flight flag,
# cookie file writer and status endpoint all belong to one crawler instance.
import asyncio
import json
import logging
import sys
import time

import aiohttp
from dotenv import load_dotenv

load_dotenv()

import config

LOGGER = logging.getLogger("run_scheduled_crawl")

STATUS_PATH = "/api/novels/crawl/status"
SCHEDULED_PATH = "/api/novels/crawl/scheduled"


def _setup_logging(level: str) -> None:
    numeric = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


async def _request_json(session, method: str, url: str) -> dict:
    async with session.request(method, url) as response:
        response.raise_for_status()
        return await response.json(content_type=None)


async def run_scheduled_crawl(
    session,
    *,
    api_base_url: str = config.NOVEL_API_BASE_URL,
    poll_seconds: float = config.NOVEL_SCHEDULED_POLL_SECONDS,
    sleep=asyncio.sleep,
) -> dict:
    """
    웹 프로세스에 예약 크롤링을 요청하고, 끝날 때까지 상태를 조회한 뒤 결과 보고서를 반환합니다.
    """
    report = {'status': '성공'}
    start_time = time.time()
    base_url = api_base_url.rstrip('/')

    try:
        started = await _request_json(session, 'POST', f"{base_url}{SCHEDULED_PATH}")
        if not started.get('started'):
            report['status'] = '스킵'
            report['skip_reason'] = 'already_running'
        else:
            LOGGER.info("Scheduled crawl started (pages=%s), waiting for completion", started.get('pages'))
            while True:
                await sleep(poll_seconds)
                status = await _request_json(session, 'GET', f"{base_url}{STATUS_PATH}")
                if not status.get('running'):
                    break
            crawl = status.get('last_report') or {}
            report['crawl'] = crawl
            if crawl.get('stopped_reason') == 'error':
                report['status'] = '실패'
                aborted = [e for e in crawl.get('errors') or [] if e.get('code') == 'CRAWL_ABORTED']
                report['error_message'] = aborted[-1]['message'] if aborted else 'crawl aborted'
    except Exception as e:
        LOGGER.error("Scheduled crawl failed: %s", e, exc_info=True)
        report['status'] = '실패'
        report['error_message'] = f"{type(e).__name__}: {e}"

    report['duration'] = time.time() - start_time
    return report


async def _run() -> dict:
    timeout = aiohttp.ClientTimeout(total=config.NOVEL_HTTP_TIMEOUT_SECONDS)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        return await run_scheduled_crawl(session)


def main() -> int:
    _setup_logging(config.LOG_LEVEL)
    report = asyncio.run(_run())
    print(json.dumps(report, ensure_ascii=False))
    return 1 if report['status'] == '실패' else 0


if __name__ == '__main__':
    sys.exit(main())
