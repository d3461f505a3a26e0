"""Script to verify that the environment is configured for the chosen backends."""

import sys
import os

# Add the project root to sys.path to allow importing from 'app'
sys.path.append(os.getcwd())

from app.config import Settings


def verify_env() -> int:
    print("🔍 Verifying environment variables (.env and process environment)...\n")
    settings = Settings()

    required: list[tuple[str, bool]] = []
    if settings.classifier_backend == "openai" or settings.embedding_backend == "openai":
        key_name = "GROQ_API_KEY" if settings.llm_base_url and "groq" in settings.llm_base_url else "OPENAI_API_KEY"
        required.append((key_name, bool(settings.llm_api_key)))
    if settings.vector_store_backend == "pgvector":
        required.append(("DATABASE_URL", bool(settings.database_url)))

    optional = [
        ("OPENAI_API_KEY", bool(settings.openai_api_key)),
        ("GROQ_API_KEY", bool(settings.groq_api_key)),
        ("LLM_BASE_URL", bool(settings.llm_base_url)),
    ]

    print(
        f"Backends: classifier={settings.classifier_backend}, "
        f"embeddings={settings.embedding_backend}, vectors={settings.vector_store_backend}\n"
    )

    has_errors = False
    print("Required variables:")
    if not required:
        print("  ✅ None (offline backends)")
    for name, is_set in required:
        if is_set:
            print(f"  ✅ {name}: Set")
        else:
            print(f"  ❌ {name}: Missing")
            has_errors = True

    print("\nOptional variables:")
    for name, is_set in optional:
        if is_set:
            print(f"  ✅ {name}: Set")
        else:
            print(f"  ⚠️  {name}: Not set (optional)")

    if has_errors:
        print("\n❌ Some required variables are missing!")
        print("💡 Set them in .env, or use CLASSIFIER_BACKEND=keyword and EMBEDDING_BACKEND=hashing")
        return 1

    print("\n✅ All required environment variables are set!")
    return 0


if __name__ == "__main__":
    sys.exit(verify_env())
