"""HTML pages shown in the browser at the end of the Google OAuth flow."""

from __future__ import annotations

from html import escape

_STYLE = """
      body { font-family: system-ui; display: flex; align-items: center; justify-content: center;
             height: 100vh; margin: 0; background: #0f172a; color: white; }
      .container { text-align: center; max-width: 500px; padding: 2rem; }
      h1 { margin-bottom: 1rem; }
      h1.ok { color: #60a5fa; }
      h1.fail { color: #ef4444; }
      p { color: #94a3b8; line-height: 1.6; }
      ul { text-align: left; margin: 1rem auto; max-width: 300px; }
      button { margin-top: 2rem; padding: 0.75rem 2rem; background: #3b82f6; color: white;
               border: none; border-radius: 0.5rem; cursor: pointer; font-size: 1rem; }
"""


def connected_page() -> str:
    return f"""<html>
  <head>
    <title>Authorization Successful</title>
    <style>{_STYLE}</style>
  </head>
  <body>
    <div class="container">
      <h1 class="ok">&#10003; Google Services Connected!</h1>
      <p>Your Google account has been authorized with access to:</p>
      <ul>
        <li>Gmail (read, send, modify, labels)</li>
        <li>Google Calendar (events, read/write)</li>
      </ul>
      <p>You can now close this window and return to the app.</p>
      <button onclick="window.close()">Close Window</button>
    </div>
  </body>
</html>
"""


def failed_page(message: str) -> str:
    return f"""<html>
  <head>
    <title>Authorization Failed</title>
    <style>{_STYLE}</style>
  </head>
  <body>
    <div class="container">
      <h1 class="fail">&#10007; Authorization Failed</h1>
      <p>{escape(message or "Unknown error occurred")}</p>
    </div>
  </body>
</html>
"""
