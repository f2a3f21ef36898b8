#!/usr/bin/env python3
"""Helper script to check and create the .env file for the external integrations."""

from pathlib import Path
import os
import sys

SECRET_KEYS = ("FARM_ORS_API_KEY", "FARM_SHOPIFY_ACCESS_TOKEN")

TEMPLATE = """# OpenRouteService (geocoding + route optimization)
FARM_ORS_API_KEY=your-ors-api-key

# Shopify Admin API (order source)
FARM_SHOPIFY_SHOP=your-shop.myshopify.com
FARM_SHOPIFY_ACCESS_TOKEN=shpat_your_token
# FARM_SHOPIFY_API_VERSION=2023-10

# Route endpoints as longitude,latitude
# FARM_FARM_LOCATION=151.2093,-33.8688
# FARM_MARKET_LOCATION=151.7789,-32.9283

# FARM_LOG_LEVEL=INFO
# FARM_DATA_ROOT=./data
"""


def _mask(line: str) -> str:
    name, _, value = line.partition("=")
    value = value.strip()
    if name.strip() in SECRET_KEYS and len(value) > 12:
        return f"{name}={value[:6]}...{value[-4:]}"
    return line


def main():
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Farm Dispatch Environment Checker")
    print("=" * 60)
    print()

    if not env_file.exists():
        print(f"❌ .env file NOT found at: {env_file}")
        env_file.write_text(TEMPLATE, encoding="utf-8")
        print(f"✅ Created template .env file at: {env_file}")
        print("⚠️  Please edit .env and add your OpenRouteService and Shopify credentials!")
        return

    print(f"✅ Found .env file at: {env_file}")
    print("-" * 60)
    for line in env_file.read_text(encoding="utf-8").splitlines():
        print(_mask(line))
    print("-" * 60)
    print()

    try:
        sys.path.insert(0, str(project_root / "src"))
        from farmdispatch.config import settings
    except Exception as e:
        print(f"❌ Error loading config: {e}")
        print("Make sure you're running this from the project root directory")
        return

    checks = {
        "FARM_ORS_API_KEY": bool(settings.ors_api_key),
        "FARM_SHOPIFY_SHOP": bool(settings.shopify_shop),
        "FARM_SHOPIFY_ACCESS_TOKEN": bool(settings.shopify_access_token),
    }
    for name, present in checks.items():
        source = "environment" if os.getenv(name) else ".env/defaults"
        print(f"{'✅' if present else '❌'} {name} ({source})")
    print()
    print(f"Farm location:   {settings.farm_location}")
    print(f"Market location: {settings.market_location}")
    print()
    if all(checks.values()):
        print("✅ SUCCESS: all integrations are configured!")
    else:
        print("❌ Some integrations are NOT configured; order loading or routing will fail.")


if __name__ == "__main__":
    main()
