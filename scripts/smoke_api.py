#!/usr/bin/env python3
import argparse
import json
from pathlib import Path

import httpx


def main() -> None:
    parser = argparse.ArgumentParser(description="End-to-end smoke test against a running backend.")
    parser.add_argument("--api-base", default="http://127.0.0.1:8000", help="Backend base URL.")
    parser.add_argument("--persona", default="vc", help="Persona id: angel, vc or product.")
    parser.add_argument("--document", help="Optional .txt/.docx/.pdf/.pptx to parse first.")
    parser.add_argument("--timeout-seconds", type=int, default=240, help="Per-request timeout.")
    parser.add_argument("--save", action="store_true", help="Also save the result to history.")
    args = parser.parse_args()

    with httpx.Client(timeout=float(args.timeout_seconds), trust_env=False) as client:
        health = client.get(f"{args.api_base}/health")
        health.raise_for_status()
        print(f"health: {health.json()}")

        if args.document:
            document_path = Path(args.document).expanduser().resolve()
            if not document_path.exists():
                raise FileNotFoundError(f"Document not found: {document_path}")
            with document_path.open("rb") as document_file:
                files = {"file": (document_path.name, document_file, "application/octet-stream")}
                parse_resp = client.post(f"{args.api_base}/api/parse-document", files=files)
            parse_resp.raise_for_status()
            print(f"parsed document chars: {len(parse_resp.json()['text'])}")

        # No audio is sent; a backend without a provider answers with the canned transcript.
        transcribe_resp = client.post(f"{args.api_base}/api/transcribe", json={"audioData": "AAAA"})
        transcribe_resp.raise_for_status()
        transcript = transcribe_resp.json()
        print(f"transcript source: {transcript['source']} words: {len(transcript['words'])}")

        analyze_resp = client.post(
            f"{args.api_base}/api/analyze",
            json={"transcript": {"text": transcript["text"], "words": transcript["words"]}, "persona": args.persona},
        )
        analyze_resp.raise_for_status()
        analysis = analyze_resp.json()
        weak = [segment for segment in analysis["segments"] if segment["weakMoment"]]
        print(f"overall score: {analysis['overallScore']} segments: {len(analysis['segments'])} weak: {len(weak)}")

        suggest_resp = client.post(
            f"{args.api_base}/api/suggest",
            json={"weakSegments": weak, "persona": args.persona},
        )
        suggest_resp.raise_for_status()
        suggestions = suggest_resp.json()
        if len(suggestions) != len(weak):
            raise RuntimeError(f"Expected {len(weak)} suggestions, got {len(suggestions)}.")

        voice_resp = client.post(f"{args.api_base}/api/voice-analyze", json={"words": transcript["words"]})
        voice_resp.raise_for_status()
        print(f"voice analysis: {json.dumps(voice_resp.json(), indent=2)}")

        if args.save:
            save_resp = client.post(
                f"{args.api_base}/api/history",
                json={
                    "transcript": {"text": transcript["text"], "words": transcript["words"]},
                    "analysis": analysis,
                    "persona": args.persona,
                    "suggestions": suggestions,
                    "voiceAnalysis": voice_resp.json(),
                },
            )
            save_resp.raise_for_status()
            print(f"saved history item: {save_resp.json()['id']}")

    print("smoke test passed")


if __name__ == "__main__":
    main()
