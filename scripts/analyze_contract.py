"""Script to send a plain-text contract to the ClauseGuard API for analysis."""

import sys
import requests
from pathlib import Path

API_URL = "http://localhost:8000/api/v1/analysis"


def analyze_contract(file_path: str, contract_type: str | None = None):
    path = Path(file_path)

    if not path.exists():
        print(f"❌ Error: File not found at {file_path}")
        return

    payload = {
        "contract_text": path.read_text(encoding="utf-8"),
        "contract_type": contract_type,
        "filename": path.name,
    }
    print(f"📤 Sending {path.name} to {API_URL}...")

    try:
        response = requests.post(API_URL, json=payload, timeout=300)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        print(f"❌ Request failed: {e}")
        print("💡 Make sure the server is running (uvicorn app.main:app --reload)")
        return

    result = response.json()
    if not result["success"]:
        print(f"❌ Analysis failed: {result['error']}")
        return

    analysis = result["analysis"]
    print(f"🆔 Contract ID: {result['contract_id']}")
    print(f"📄 Type: {analysis['contract_type']}")
    print(f"📊 Overall risk: {analysis['overall_risk']} ({analysis['risk_score']}/100)")
    if result["degraded"]:
        print(f"⚠️  {len(result['failures'])} clauses could not be classified")

    print("\n🚩 Flagged clauses:")
    print("-" * 50)
    for clause in analysis["flagged_clauses"]:
        print(f"[{clause['risk_level'].upper():6}] {clause['risk_score']:3} {clause['clause_type']} @ {clause['position']}")
        print(f"         {clause['explanation']}")
    print("-" * 50)

    if analysis["negotiation_priorities"]:
        print("\n🤝 Negotiation priorities:")
        for i, item in enumerate(analysis["negotiation_priorities"], 1):
            print(f"{i}. {item}")

    print(f"\n📝 {analysis['summary']}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/analyze_contract.py <path_to_contract.txt> [contract_type]")
    else:
        analyze_contract(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)
