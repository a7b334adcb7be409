import os
import sys
import argparse
import requests
from dotenv import load_dotenv

# Load environment variables
script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
load_dotenv(os.path.join(project_root, '.env.local'))

BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")


def filename_from_response(response, fallback):
    disposition = response.headers.get("content-disposition", "")
    if "filename=" in disposition:
        return disposition.split("filename=", 1)[1].strip().strip('"')
    return fallback


def download_pdf(path, fallback_name, output_dir):
    url = f"{BACKEND_URL}{path}"
    try:
        response = requests.get(url, timeout=60)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        print(f"Error downloading {url}: {e}")
        sys.exit(1)

    os.makedirs(output_dir, exist_ok=True)
    target = os.path.join(output_dir, filename_from_response(response, fallback_name))
    with open(target, "wb") as f:
        f.write(response.content)
    return target


def main():
    parser = argparse.ArgumentParser(description="Download quote or booking confirmation PDFs from the back-office API.")
    parser.add_argument("ids", nargs="+", help="Quote IDs (or booking IDs with --booking)")
    parser.add_argument("--booking", action="store_true", help="Treat IDs as booking IDs and fetch confirmations")
    parser.add_argument("--output", default="exports", help="Directory to write PDFs into")
    args = parser.parse_args()

    for record_id in args.ids:
        if args.booking:
            path = download_pdf(f"/api/bookings/{record_id}/pdf", f"booking-{record_id}.pdf", args.output)
        else:
            path = download_pdf(f"/api/quotes/{record_id}/pdf", f"quote-{record_id}.pdf", args.output)
        print(f"Saved {path}")


if __name__ == "__main__":
    main()
