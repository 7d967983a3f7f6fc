#!/usr/bin/env python3
"""Turn a data file into a three-page PDF dashboard via the OpenAI Responses API."""

import argparse, json, logging, os, pathlib
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple
from dotenv import load_dotenv
from openai import OpenAI, OpenAIError
from tqdm import tqdm

from insightsimple.extract_response_text import extract_response_text
from insightsimple.layout_pages import Page, layout_report
from insightsimple.parse_report import ReportRecord, parse_report
from insightsimple.render_pdf import CONTENT_TYPE, render_pdf, suggested_filename

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'gpt-4.1-mini'
DEFAULT_TIMEOUT = 120.0
DEFAULT_PROMPT = "Generate an executive dashboard from this file."

REPORT_INSTRUCTIONS = """
ROLE: Business analyst building a one-glance executive dashboard.
INPUT: The attached data file and the user's request.

OUTPUT (JSON ONLY):
Return exactly one JSON object with these keys:
- title: short dashboard title (<= 8 words)
- executive_summary: 2–4 sentences
- kpis: array of up to 6 objects {"label": "...", "value": "..."}; values are short strings
- insights: array of up to 8 short sentences grounded in the data
- recommendations: array of up to 8 concrete, actionable sentences

Rules:
- No text before or after the JSON object, no Markdown fences.
- Do NOT invent figures that are not supported by the file.
""".strip()


@dataclass(frozen=True)
class DashboardArtifact:
    filename: str
    content_type: str
    data: bytes
    record: ReportRecord
    pages: List[Page]


def build_dashboard(response: Any) -> DashboardArtifact:
    """Run extraction, recovery parsing, layout and rendering over one response payload."""
    text = extract_response_text(response)
    record = parse_report(text)
    pages = layout_report(record)
    return DashboardArtifact(
        filename=suggested_filename(record.title),
        content_type=CONTENT_TYPE,
        data=render_pdf(pages, title=record.title),
        record=record,
        pages=pages,
    )

def upload_file(client: OpenAI, path: pathlib.Path, timeout: float) -> str:
    with open(path, 'rb') as f:
        uploaded = client.files.create(file=f, purpose='user_data', timeout=timeout)
    return uploaded.id

def request_report(client: OpenAI, model: str, prompt: str, file_id: str, timeout: float) -> Dict:
    resp = client.responses.create(
        model=model,
        instructions=REPORT_INSTRUCTIONS,
        input=[{"role": "user", "content": [
            {"type": "input_text", "text": prompt},
            {"type": "input_file", "file_id": file_id},
        ]}],
        temperature=0.2,
        timeout=timeout,
    )
    return resp.model_dump()

def generate_for_file(client: OpenAI, path: pathlib.Path, model: str, prompt: str,
                      timeout: float) -> Tuple[Dict, DashboardArtifact]:
    file_id = upload_file(client, path, timeout)
    logger.info("Uploaded %s as %s", path.name, file_id)
    payload = request_report(client, model, prompt, file_id, timeout)
    return payload, build_dashboard(payload)

def write_outputs(artifact: DashboardArtifact, outdir: pathlib.Path) -> pathlib.Path:
    pdf_path = outdir / artifact.filename
    pdf_path.write_bytes(artifact.data)
    record_path = outdir / f"{pdf_path.stem}.json"
    record_path.write_text(json.dumps(artifact.record.model_dump(), indent=2, ensure_ascii=False), encoding='utf-8')
    return pdf_path


def main(argv=None):
    load_dotenv()
    ap = argparse.ArgumentParser()
    ap.add_argument('-i', '--input', nargs='+', default=[], help='Data file(s) to build dashboards from')
    ap.add_argument('-p', '--prompt', default=DEFAULT_PROMPT)
    ap.add_argument('-m', '--model', default=os.getenv('OPENAI_MODEL', DEFAULT_MODEL))
    ap.add_argument('-o', '--outdir', required=True)
    ap.add_argument('--timeout', type=float, default=float(os.getenv('OPENAI_TIMEOUT', DEFAULT_TIMEOUT)),
                    help='Seconds allowed for each OpenAI call')
    ap.add_argument('--response-json', help='Render from a saved Responses API payload instead of calling the API')
    ap.add_argument('--save-response', action='store_true', help='Keep the raw response payload next to the PDF')
    ap.add_argument('-v', '--verbose', action='store_true')
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    outdir = pathlib.Path(args.outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    if args.response_json:
        path = pathlib.Path(args.response_json)
        if not path.exists():
            raise SystemExit(f"Error: {path} not found")
        try:
            payload = json.loads(path.read_text(encoding='utf-8'))
        except json.JSONDecodeError as e:
            raise SystemExit(f"Error: {path} is not valid JSON: {e}")
        pdf_path = write_outputs(build_dashboard(payload), outdir)
        print(f"Wrote dashboard → {pdf_path}")
        return

    if not args.input:
        ap.error('--input is required unless --response-json is given')
    if not os.getenv('OPENAI_API_KEY'):
        raise SystemExit('OPENAI_API_KEY is not set. Provide via environment or .env')

    inputs = [pathlib.Path(p) for p in args.input]
    missing = [str(p) for p in inputs if not p.is_file()]
    if missing:
        raise SystemExit(f"Error: input not found: {', '.join(missing)}")

    client = OpenAI()
    for path in tqdm(inputs, desc='Generating'):
        try:
            payload, artifact = generate_for_file(client, path, args.model, args.prompt, args.timeout)
        except OpenAIError as e:
            raise SystemExit(f"Could not generate dashboard for {path.name}: {e}")
        pdf_path = write_outputs(artifact, outdir)
        if args.save_response:
            (outdir / f"{pdf_path.stem}.response.json").write_text(
                json.dumps(payload, indent=2, ensure_ascii=False, default=str), encoding='utf-8')
        print(f"Wrote dashboard for {path.name} → {pdf_path}")

if __name__ == '__main__':
    main()
