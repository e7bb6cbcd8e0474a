from __future__ import annotations

import argparse
import time
from dataclasses import dataclass, field
from typing import Any

import httpx


def emit(message: str = "") -> None:
    print(message, flush=True)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Send one query to a running service, wait for every provider to settle "
            "and print the ordered result sections."
        )
    )
    parser.add_argument("text", help="Text to look up or translate")
    parser.add_argument(
        "--base-url",
        default="http://127.0.0.1:8000",
        help="Service base URL (default: http://127.0.0.1:8000)",
    )
    parser.add_argument(
        "--target",
        default=None,
        help="Target language id, e.g. en or zh-CHS (default: automatic)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=15.0,
        help="Seconds to wait for the query to settle (default: 15)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=0.3,
        help="Polling interval in seconds (default: 0.3)",
    )
    return parser.parse_args()


@dataclass
class ProbeState:
    phase: str = "idle"
    request_id: int = 0
    loading: bool = False
    show_detail: bool = False
    in_flight: list[str] = field(default_factory=list)
    detection: dict[str, Any] | None = None
    sections: list[dict[str, Any]] = field(default_factory=list)


def read_state(payload: dict[str, Any]) -> ProbeState:
    update = payload.get("update") if isinstance(payload.get("update"), dict) else {}
    sections = update.get("sections", [])
    return ProbeState(
        phase=str(payload.get("phase", "idle")),
        request_id=int(payload.get("request_id", 0) or 0),
        loading=bool(payload.get("loading", False)),
        show_detail=bool(update.get("show_detail", False)),
        in_flight=[str(item) for item in payload.get("in_flight", [])],
        detection=payload.get("detection") if isinstance(payload.get("detection"), dict) else None,
        sections=[item for item in sections if isinstance(item, dict)],
    )


def verdict(state: ProbeState, settled: bool) -> str:
    if not settled:
        return f"NOT SETTLED: still waiting on {', '.join(state.in_flight) or 'detection'}."
    if not state.sections:
        return "EMPTY: query settled without visible results; check /realtime/recent for notices."
    providers = []
    for section in state.sections:
        provider_id = section.get("provider_id")
        if provider_id and provider_id not in providers:
            providers.append(provider_id)
    return f"SETTLED: {len(providers)} provider(s) answered ({', '.join(providers)})."


def print_sections(state: ProbeState) -> None:
    for section in state.sections:
        title = section.get("title")
        if title:
            emit(f"== {title}")
        for item in section.get("items", []):
            subtitle = item.get("subtitle") or ""
            suffix = f"  [{subtitle}]" if subtitle else ""
            emit(f"   {item.get('title', '')}{suffix}")


def main() -> int:
    args = parse_args()
    base_url = args.base_url.rstrip("/")
    interval = max(0.05, args.interval)

    body: dict[str, Any] = {"text": args.text, "immediate": True}
    if args.target:
        body["target_language"] = args.target

    with httpx.Client(timeout=10.0) as client:
        try:
            health = client.get(f"{base_url}/health")
            health.raise_for_status()
        except httpx.HTTPError as exc:
            emit(f"failed to reach service health endpoint: {exc}")
            return 2

        response = client.post(f"{base_url}/queries", json=body)
        if response.status_code != 200:
            emit(f"query rejected: {response.status_code} {response.text}")
            return 2

        state = read_state(response.json())
        emit(f"query submitted (request_id={state.request_id}, phase={state.phase})")
        if state.detection:
            emit(
                f"detected {state.detection.get('language_code')!r} "
                f"via {state.detection.get('source_id')} "
                f"(rule={state.detection.get('rule')}, confirmed={state.detection.get('confirmed')})"
            )

        deadline = time.monotonic() + max(0.5, args.timeout)
        settled = state.phase == "settled"
        while not settled and time.monotonic() < deadline:
            time.sleep(interval)
            state = read_state(client.get(f"{base_url}/queries/current").json())
            settled = state.phase == "settled"

    emit("")
    print_sections(state)
    emit("")
    emit(f"VERDICT: {verdict(state, settled)}")
    return 0 if settled else 1


if __name__ == "__main__":
    raise SystemExit(main())
