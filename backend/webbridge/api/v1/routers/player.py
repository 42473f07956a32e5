from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter(tags=["player"])

# Minimal player: connects to /ws/{chat_id} and plays whatever is pushed.
_PLAYER_HTML = """<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>WebBridge</title>
  <style>
    body {{ font-family: sans-serif; margin: 2rem; background: #111; color: #eee; }}
    #stage video, #stage audio, #stage img {{ max-width: 100%; }}
    #status {{ color: #888; }}
  </style>
</head>
<body>
  <p id="status">Connecting…</p>
  <h3 id="title"></h3>
  <div id="stage"></div>
  <script>
    const chatId = "{chat_id}";
    const stage = document.getElementById("stage");
    const status = document.getElementById("status");
    const title = document.getElementById("title");

    function render(m) {{
      stage.innerHTML = "";
      let el;
      if (m.mimeType.startsWith("video/")) {{
        el = document.createElement("video");
        el.controls = true; el.autoplay = true;
        el.loop = m.isAnimation === "true";
      }} else if (m.mimeType.startsWith("audio/")) {{
        el = document.createElement("audio");
        el.controls = true; el.autoplay = true;
      }} else if (m.mimeType.startsWith("image/")) {{
        el = document.createElement("img");
      }} else {{
        el = document.createElement("a");
        el.textContent = m.fileName; el.target = "_blank";
      }}
      if (el.tagName === "A") {{ el.href = m.url; }} else {{ el.src = m.url; }}
      title.textContent = m.title ? (m.performer ? m.performer + " – " : "") + m.title : m.fileName;
      stage.appendChild(el);
    }}

    function connect() {{
      const proto = location.protocol === "https:" ? "wss" : "ws";
      const ws = new WebSocket(proto + "://" + location.host + "/ws/" + chatId);
      ws.onmessage = (e) => {{
        const m = JSON.parse(e.data);
        if (m.type === "ready") {{ status.textContent = "Waiting for media…"; return; }}
        if (m.type === "pong") {{ return; }}
        render(m);
      }};
      const heartbeat = setInterval(() => ws.readyState === 1 && ws.send("ping"), 30000);
      ws.onclose = (e) => {{
        clearInterval(heartbeat);
        if (e.code === 1008) {{ status.textContent = "This chat is not authorized."; return; }}
        status.textContent = "Disconnected, retrying…";
        setTimeout(connect, 3000);
      }};
    }}
    connect();
  </script>
</body>
</html>
"""

@router.get("/{chat_id}", response_class=HTMLResponse)
async def player_page(chat_id: int):
    """
    Per-user web entry point ({base_url}/{chat_id}).

    Serves the player page; authorization is enforced when the page opens
    its WebSocket, not here.
    """
    return HTMLResponse(_PLAYER_HTML.format(chat_id=chat_id))
