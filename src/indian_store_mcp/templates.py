"""HTML pages for the browser side of the login flow.

Every value interpolated into a page is HTML-escaped; provider error
descriptions in particular are attacker-influenced query parameters.
"""

from __future__ import annotations

from html import escape
from urllib.parse import urlencode

LOGIN_PAGE = """<!DOCTYPE html>
<html>
<head>
    <title>Indian Store MCP - Login</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
               background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
               min-height: 100vh; display: flex; align-items: center; justify-content: center; margin: 0; }}
        .login-container {{ background: white; padding: 40px; border-radius: 10px;
                           box-shadow: 0 10px 40px rgba(0,0,0,0.2); width: 100%; max-width: 400px; }}
        h1 {{ color: #333; margin: 0 0 10px 0; font-size: 24px; }}
        .subtitle {{ color: #666; margin: 0 0 30px 0; font-size: 14px; }}
        .form-group {{ margin-bottom: 20px; }}
        label {{ display: block; margin-bottom: 5px; color: #555; font-size: 14px; font-weight: 500; }}
        input[type="email"], input[type="password"] {{
            width: 100%; padding: 12px; border: 2px solid #e0e0e0; border-radius: 5px;
            font-size: 14px; box-sizing: border-box; transition: border-color 0.3s; }}
        input:focus {{ outline: none; border-color: #667eea; }}
        button {{ width: 100%; padding: 12px; background: #667eea; color: white; border: none;
                 border-radius: 5px; font-size: 16px; font-weight: 600; cursor: pointer; }}
        button:hover {{ background: #5568d3; }}
        .error {{ background: #fee; border: 1px solid #fcc; color: #c00; padding: 12px;
                 border-radius: 5px; margin-bottom: 20px; font-size: 14px; }}
    </style>
</head>
<body>
    <div class="login-container">
        <h1>Indian Store MCP</h1>
        <p class="subtitle">Sign in to authorize access</p>
        {error}
        <form method="POST" action="{action}">
            <input type="hidden" name="login_challenge" value="{challenge}">
            <div class="form-group">
                <label for="email">Email</label>
                <input type="email" id="email" name="email" required autofocus>
            </div>
            <div class="form-group">
                <label for="password">Password</label>
                <input type="password" id="password" name="password" required>
            </div>
            <button type="submit">Sign In</button>
        </form>
    </div>
</body>
</html>
"""

ERROR_PAGE = """<!DOCTYPE html>
<html>
<head>
    <title>OAuth Error</title>
    <style>
        body {{ font-family: Arial, sans-serif; max-width: 600px; margin: 50px auto; padding: 20px; }}
        .error {{ background: #fee; border: 1px solid #fcc; padding: 20px; border-radius: 5px; }}
        h1 {{ color: #c00; }}
    </style>
</head>
<body>
    <div class="error">
        <h1>OAuth Error</h1>
        <p><strong>Error:</strong> {error_code}</p>
        <p><strong>Description:</strong> {error_description}</p>
        <p><a href="/">Return to home</a></p>
    </div>
</body>
</html>
"""


def render_login(challenge: str, error: str = "") -> str:
    error_html = f'<div class="error">{escape(error)}</div>' if error else ""
    return LOGIN_PAGE.format(
        action=escape("/login?" + urlencode({"login_challenge": challenge})),
        challenge=escape(challenge),
        error=error_html,
    )


def render_error(error_code: str, error_description: str) -> str:
    return ERROR_PAGE.format(
        error_code=escape(error_code),
        error_description=escape(error_description),
    )
