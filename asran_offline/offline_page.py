"""Offline fallback page served when a navigation cannot be satisfied."""

import httpx

OFFLINE_TITLE = "오프라인 상태"

OFFLINE_PAGE_HTML = """<!DOCTYPE html>
<html lang="ko">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>오프라인 - ASRAN</title>
  <style>
    body {
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
      margin: 0;
      padding: 20px;
      background-color: #F9FAFB;
      display: flex;
      align-items: center;
      justify-content: center;
      min-height: 100vh;
      text-align: center;
    }
    .container {
      max-width: 400px;
      background: white;
      padding: 40px;
      border-radius: 16px;
      box-shadow: 0 4px 6px rgba(0, 0, 0, 0.1);
    }
    .logo { font-size: 32px; font-weight: bold; color: #1F2937; margin-bottom: 8px; }
    .subtitle { color: #F59E0B; margin-bottom: 24px; }
    h1 { color: #1F2937; margin-bottom: 16px; }
    p { color: #6B7280; line-height: 1.6; }
    .retry-btn {
      background: #F59E0B;
      color: #1F2937;
      border: none;
      padding: 12px 24px;
      border-radius: 8px;
      font-weight: 600;
      cursor: pointer;
      margin-top: 20px;
    }
    .retry-btn:hover { background: #D97706; }
  </style>
</head>
<body>
  <div class="container">
    <div class="logo">ASRAN</div>
    <div class="subtitle">독일 기술력</div>
    <h1>오프라인 상태</h1>
    <p>인터넷 연결을 확인하고 다시 시도해주세요.</p>
    <p>캐시된 페이지는 계속 이용하실 수 있습니다.</p>
    <button class="retry-btn" onclick="window.location.reload()">다시 시도</button>
  </div>
</body>
</html>
"""


def render_offline_page() -> httpx.Response:
    """Build the self-contained offline page response."""
    return httpx.Response(
        200,
        headers={"Content-Type": "text/html; charset=utf-8"},
        content=OFFLINE_PAGE_HTML.encode("utf-8"),
    )
