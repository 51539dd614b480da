from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from classifieds.marketplace import Marketplace
from classifieds.models.listing import ImageFile, ListingDraft
from classifieds.renderer import TABS, filter_category, filter_listings, render_listings, render_page, switch_tab
from classifieds.state import ViewState
from classifieds.utils.categories import ALL_CATEGORIES, is_known_filter

VIEW_COOKIE = "marketplace_view"

router = APIRouter(tags=["Listing"])


@dataclass
class Visitor:
    view_id: str
    view: ViewState

    def remember(self, response: Response) -> Response:
        response.set_cookie(VIEW_COOKIE, self.view_id, httponly=True, samesite="lax")
        return response


def get_marketplace(request: Request) -> Marketplace:
    return request.app.state.marketplace


def get_visitor(request: Request, marketplace: Marketplace = Depends(get_marketplace)) -> Visitor:
    view_id, view = marketplace.views.get(request.cookies.get(VIEW_COOKIE))
    return Visitor(view_id=view_id, view=view)


def parse_price(raw: str) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return float("nan")


async def read_image(upload: Optional[UploadFile]) -> Optional[ImageFile]:
    # Browsers send an empty part when no file was picked.
    if upload is None or not upload.filename:
        return None
    data = await upload.read()
    if not data:
        return None
    return ImageFile(
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
        data=data,
    )


def check_category(category: str):
    if not is_known_filter(category):
        raise HTTPException(status_code=404, detail=f"Unknown category: {category}")


@router.get("/", response_class=HTMLResponse)
def index(
    marketplace: Marketplace = Depends(get_marketplace),
    visitor: Visitor = Depends(get_visitor),
):
    return visitor.remember(HTMLResponse(render_page(marketplace.state, visitor.view)))


@router.get("/listings", response_class=HTMLResponse)
def listings_fragment(
    category: str = Query(ALL_CATEGORIES),
    marketplace: Marketplace = Depends(get_marketplace),
):
    # Read-only: the fragment never changes anybody's selected filter.
    check_category(category)
    return render_listings(marketplace.state, category)


@router.get("/category/{name}")
def select_category(name: str, visitor: Visitor = Depends(get_visitor)):
    check_category(name)
    filter_category(visitor.view, name)
    return visitor.remember(RedirectResponse(url="/#listings", status_code=303))


@router.get("/tab/{name}")
def select_tab(name: str, visitor: Visitor = Depends(get_visitor)):
    if name not in TABS:
        raise HTTPException(status_code=404, detail=f"Unknown tab: {name}")
    switch_tab(visitor.view, name)
    return visitor.remember(RedirectResponse(url="/", status_code=303))


@router.post("/listing/create", response_class=HTMLResponse)
async def create_listing(
    title: str = Form(""),
    category: str = Form(""),
    price: str = Form(""),
    description: str = Form(""),
    imageUrl: str = Form(""),
    imageFile: Optional[UploadFile] = File(None),
    marketplace: Marketplace = Depends(get_marketplace),
    visitor: Visitor = Depends(get_visitor),
):
    draft = ListingDraft(
        title=title,
        category=category,
        price=parse_price(price),
        description=description,
        image_url=imageUrl,
        image=await read_image(imageFile),
    )
    result = await marketplace.submission.submit(draft, visitor.view)
    if result.ok:
        return visitor.remember(RedirectResponse(url="/", status_code=303))
    switch_tab(visitor.view, "sell")
    return visitor.remember(HTMLResponse(render_page(marketplace.state, visitor.view), status_code=400))


@router.get("/api/listings")
def api_listings(
    category: str = Query(ALL_CATEGORIES),
    marketplace: Marketplace = Depends(get_marketplace),
):
    check_category(category)
    listings = filter_listings(marketplace.state.listings, category)
    return [l.model_dump() for l in listings]
