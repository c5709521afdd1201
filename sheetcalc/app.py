import os
import logging
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

load_dotenv()

from sheetcalc.models import (
    ColumnResponse, FormulaEvaluateRequest, FormulaEvaluateResponse, RangeRequest, RangeResponse,
    SelectionRangeRequest, SelectionRangeResponse, SheetEvaluateRequest, SheetEvaluateResponse,
)
from sheetcalc.formula import (
    ERROR_SENTINEL, FormulaError, column_letter_to_number, column_number_to_letter,
    evaluate_formula, extract_cell_range, is_formula,
)
from sheetcalc.expression import ArithmeticEngine
from sheetcalc.grid import cell_mapping_from_grid, evaluate_sheet, format_display_value, selection_to_range

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
MAX_FORMULA_LENGTH = int(os.getenv("MAX_FORMULA_LENGTH", "8192"))

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="SheetCalc")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Stateless, safe to share between requests.
engine = ArithmeticEngine()


@app.get("/health")
async def health():
    return {"status": "ok"}


# ── Formulas ─────────────────────────────────────────────────────────

@app.post("/formula/evaluate", response_model=FormulaEvaluateResponse)
async def evaluate_formula_route(req: FormulaEvaluateRequest):
    if len(req.formula) > MAX_FORMULA_LENGTH:
        raise HTTPException(status_code=422, detail=f"Formula longer than {MAX_FORMULA_LENGTH} characters")
    value = evaluate_formula(req.formula, req.cells, engine)
    return FormulaEvaluateResponse(
        formula=req.formula,
        value=value,
        error=is_formula(req.formula) and value == ERROR_SENTINEL,
    )

@app.post("/formula/range", response_model=RangeResponse)
async def extract_range_route(req: RangeRequest):
    try:
        values = extract_cell_range(req.range, req.cells)
    except FormulaError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return RangeResponse(range=req.range, values=values)


# ── Columns ──────────────────────────────────────────────────────────

@app.get("/columns/{letter}", response_model=ColumnResponse)
async def column_number(letter: str):
    if not letter.isalpha() or not letter.isascii():
        raise HTTPException(status_code=422, detail=f"Not a column name: {letter!r}")
    letter = letter.upper()
    return ColumnResponse(letter=letter, number=column_letter_to_number(letter))

@app.get("/columns/number/{number}", response_model=ColumnResponse)
async def column_letter(number: int):
    if number < 1:
        raise HTTPException(status_code=422, detail="Column numbers start at 1")
    return ColumnResponse(letter=column_number_to_letter(number), number=number)


# ── Sheets ───────────────────────────────────────────────────────────

@app.post("/sheets/evaluate", response_model=SheetEvaluateResponse)
async def evaluate_sheet_route(req: SheetEvaluateRequest):
    cells = cell_mapping_from_grid(req.headers, req.data)
    too_long = [ref for ref, v in cells.items() if is_formula(v) and len(v) > MAX_FORMULA_LENGTH]
    if too_long:
        raise HTTPException(status_code=422, detail=f"Formula too long in {', '.join(too_long)}")
    computed = evaluate_sheet(cells, engine)
    formats = {ref: fmt.model_dump(exclude_none=True) for ref, fmt in req.formats.items()}
    display = {ref: format_display_value(v, formats.get(ref)) for ref, v in computed.items()}
    errors = sum(1 for ref, v in computed.items() if is_formula(cells[ref]) and v == ERROR_SENTINEL)
    if errors:
        logger.info("Sheet evaluated with %d formula error(s)", errors)
    return SheetEvaluateResponse(headers=req.headers, cells=computed, display=display)

@app.post("/selection/range", response_model=SelectionRangeResponse)
async def selection_range(req: SelectionRangeRequest):
    try:
        return SelectionRangeResponse(range=selection_to_range(req.start, req.end))
    except FormulaError as e:
        raise HTTPException(status_code=422, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
