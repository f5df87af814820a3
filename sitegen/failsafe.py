"""Fail-safe project content used when generation yields nothing usable."""

from __future__ import annotations

import json
from typing import Dict


def default_project_files(*, port: int = 5173, title: str = "Fallback") -> Dict[str, str]:
    """Return a minimal Vite + React project that installs and previews on its own."""
    package_json = {
        "name": "fallback-app",
        "private": True,
        "version": "0.0.0",
        "type": "module",
        "scripts": {"dev": "vite", "build": "vite build", "preview": "vite preview"},
        "dependencies": {"react": "^18.2.0", "react-dom": "^18.2.0"},
        "devDependencies": {"@vitejs/plugin-react": "^4.2.1", "vite": "^5.0.0"},
    }
    vite_config = (
        "import { defineConfig } from 'vite';\n"
        "import react from '@vitejs/plugin-react';\n"
        "\n"
        "export default defineConfig({\n"
        "  plugins: [react()],\n"
        "  server: {\n"
        "    host: true,\n"
        f"    port: {port},\n"
        "    strictPort: true\n"
        "  }\n"
        "});"
    )
    index_html = (
        "<!DOCTYPE html>\n"
        "<html lang=\"en\">\n"
        "<head>\n"
        "  <meta charset=\"UTF-8\" />\n"
        "  <meta name=\"viewport\" content=\"width=device-width, initial-scale=1.0\" />\n"
        f"  <title>{title}</title>\n"
        "</head>\n"
        "<body>\n"
        "  <div id=\"root\"></div>\n"
        "  <script type=\"module\" src=\"/src/main.jsx\"></script>\n"
        "</body>\n"
        "</html>"
    )
    main_jsx = (
        "import React from 'react';\n"
        "import { createRoot } from 'react-dom/client';\n"
        "\n"
        "function App() {\n"
        "  return (\n"
        "    <main style={{ fontFamily: 'sans-serif', padding: '2rem' }}>\n"
        f"      <h1>{title}</h1>\n"
        "      <p>The generator did not return any files, so this placeholder project was created.</p>\n"
        "    </main>\n"
        "  );\n"
        "}\n"
        "\n"
        "createRoot(document.getElementById('root')).render(<App />);"
    )
    return {
        "package.json": json.dumps(package_json, indent=2),
        "vite.config.js": vite_config,
        "index.html": index_html,
        "src/main.jsx": main_jsx,
    }


def build_fallback_response(*, port: int = 5173, reason: str | None = None) -> str:
    """Render the default project in the tagged-block protocol.

    The acquirer substitutes this text for a model response when the remote
    service stays unavailable, so it goes through the same parser as real output.
    """
    title = "Fallback"
    blocks = []
    if reason:
        blocks.append(f"<!-- generation unavailable: {_format_reason(reason)} -->")
    for name, content in default_project_files(port=port, title=title).items():
        blocks.append(f'<file name="{name}">\n{content}\n</file>')
    return "\n\n".join(blocks) + "\n"


def _format_reason(reason: str) -> str:
    cleaned = " ".join(reason.strip().split()).replace("--", "-")
    return cleaned[:200] + ("…" if len(cleaned) > 200 else "")


__all__ = ["build_fallback_response", "default_project_files"]
