"""Helper script to create .env file interactively."""

from pathlib import Path


def _ask(prompt: str, *, required: bool = True) -> str:
    while True:
        value = input(prompt).strip()
        if value or not required:
            return value
        print("[WARN] A value is required")


def create_env_file():
    """Interactive script to create .env file with the service credentials."""
    print("=" * 60)
    print("SURVEY DOCUMENT GENERATOR - Environment Setup")
    print("=" * 60)
    print()

    env_path = Path(".env")

    if env_path.exists():
        print("[WARN] .env file already exists!")
        overwrite = input("Do you want to overwrite it? (y/n): ").strip().lower()
        if overwrite != 'y':
            print("Setup cancelled.")
            return

    print("\n[INFO] Two credentials are needed:")
    print("   - an Anthropic API key (https://console.anthropic.com/)")
    print("   - a ConvertAPI secret (https://www.convertapi.com/)")
    print()

    api_key = _ask("Enter your Anthropic API key: ")
    if not api_key.startswith("sk-ant-"):
        print("[WARN] Anthropic keys usually start with 'sk-ant-'")
    convert_secret = _ask("Enter your ConvertAPI secret: ")
    artifacts_dir = _ask("Artifacts directory (blank for default): ", required=False)

    lines = [
        "# Anthropic API Configuration",
        f"ANTHROPIC_API_KEY={api_key}",
        "",
        "# Conversion service",
        f"CONVERT_API_SECRET={convert_secret}",
    ]
    if artifacts_dir:
        lines += ["", f"SURVEY_ARTIFACTS_DIR={artifacts_dir}"]

    with open(env_path, 'w', encoding='utf-8') as f:
        f.write("\n".join(lines) + "\n")

    print("\n[OK] .env file created successfully!")
    print(f"   Location: {env_path.absolute()}")
    print()
    print("Next steps:")
    print("1. Install dependencies: pip install -e .")
    print("2. Run: survey-gen --source tz.docx --attachment attachment.pdf --output result.pdf")
    print()


if __name__ == "__main__":
    try:
        create_env_file()
    except KeyboardInterrupt:
        print("\n\nSetup cancelled by user.")
