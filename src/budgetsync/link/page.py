from __future__ import annotations

from html import escape as html_escape
import json

LINK_ERROR_HTML = """\
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8" />
  <title>Plaid Link Error</title>
  <style>
    body { font-family: sans-serif; margin: 3rem; color: #941a1d; }
    .card {
      max-width: 32rem;
      padding: 2rem;
      border: 1px solid #f5a9ab;
      border-radius: 0.5rem;
      background: #fff5f5;
    }
  </style>
</head>
<body>
  <div class="card">
    <h1>Link unavailable</h1>
    <p>Could not create a Plaid link token.</p>
    <p>Please review the terminal output.</p>
  </div>
</body>
</html>
"""

LINK_PAGE_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8" />
  <title>{title}</title>
  <style>
    body {{ font-family: sans-serif; margin: 3rem; }}
    .card {{
      max-width: 32rem;
      padding: 2rem;
      border: 1px solid #ccc;
      border-radius: 0.5rem;
    }}
    li {{ margin: 0.5rem 0; }}
  </style>
  <script src="https://cdn.plaid.com/link/v2/stable/link-initialize.js"></script>
</head>
<body>
  <div class="card">
    <h1>{title}</h1>
    <button id="link-button">Link a new account</button>
    <h2>Linked accounts</h2>
    <ul id="accounts"><li>Loading...</li></ul>
    <button id="done-button">Done</button>
    <p id="status"></p>
  </div>
  <script>
    (function() {{
      var linkToken = {link_token_json};

      function post(path, body) {{
        return fetch(path, {{
          method: "POST",
          headers: {{ "Content-Type": "application/json" }},
          body: JSON.stringify(body || {{}})
        }}).then(function(resp) {{ return resp.json(); }});
      }}

      function finish(message) {{
        post("/done").then(function() {{
          document.getElementById("status").textContent = message;
        }});
      }}

      function openLink(token, reportResult) {{
        Plaid.create({{
          token: token,
          onSuccess: function(public_token, metadata) {{
            if (!reportResult) {{ return finish("Account updated."); }}
            post("/get_access_token", {{ public_token: public_token }}).then(function() {{
              finish("Link successful. You can return to the terminal.");
            }});
          }},
          onExit: function(err, metadata) {{
            if (!reportResult) {{ return finish("Update cancelled."); }}
            var body = err ? {{ error: err }} : {{ exit: true }};
            post("/get_access_token", body).then(function() {{
              finish(err ? "Link failed." : "Link cancelled.");
            }});
          }}
        }}).open();
      }}

      document.getElementById("link-button").onclick = function() {{
        openLink(linkToken, true);
      }};
      document.getElementById("done-button").onclick = function() {{
        finish("Closed. You can return to the terminal.");
      }};

      post("/accounts").then(function(accounts) {{
        var list = document.getElementById("accounts");
        list.innerHTML = "";
        accounts.forEach(function(account) {{
          var item = document.createElement("li");
          var button = document.createElement("button");
          item.textContent = account.name + " ";
          button.textContent = "Reauthenticate";
          button.onclick = function() {{
            post("/update_link_token", {{ token: account.token }})
              .then(function(resp) {{ openLink(resp.link_token, false); }});
          }};
          item.appendChild(button);
          list.appendChild(item);
        }});
      }});
    }})();
  </script>
</body>
</html>
"""


def render_link_page(link_token: str, *, title: str = "budgetsync") -> str:
    """Render the page hosting the Plaid Link widget."""
    return LINK_PAGE_HTML_TEMPLATE.format(
        title=html_escape(title),
        link_token_json=json.dumps(link_token).replace("<", "\\u003c"),
    )
