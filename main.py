import logging
import os
from typing import Any, Dict, List, Optional, Type

from fastapi import APIRouter, Depends, FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from config import AppConfig
from database import DocumentStore, MongoDocumentStore, connect
from errors import AdminError, RuleViolation
from forms import EntityDraft, move_item, remove_item
from listing import (
    BLOG_LIST, CATEGORY_LIST, ENQUIRY_LIST, ORDER_LIST, PRODUCT_LIST, USER_LIST,
    ListSchema, ListView, toggle_status,
)
from schemas import (
    BlogPost, BlogPostUpdate, Category, CategoryUpdate, Enquiry, EnquiryUpdate,
    Order, OrderStatusUpdate, OrderUpdate, Product, ProductUpdate, Review,
    SiteSettings, Testimonial, User, UserUpdate,
)
from services import STATUS_LABELS, Services, build_services
from storage import GridFSImageStore, ImageStore, ImageUpload, MemoryImageStore

logger = logging.getLogger(__name__)

router = APIRouter()

# Dependencies

def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_images(request: Request) -> ImageStore:
    return request.app.state.images


def require_admin(request: Request, x_admin_key: Optional[str] = Header(default=None)):
    admin_key = request.app.state.config.admin_api_key
    if not admin_key:
        # If not set, allow for development convenience
        return True
    if x_admin_key != admin_key:
        raise HTTPException(status_code=401, detail="Invalid admin key")
    return True


def get_language(
    lang: Optional[str] = Query(None),
    accept_language: Optional[str] = Header(default=None),
    config: AppConfig = Depends(get_config),
) -> str:
    for candidate in (lang, (accept_language or "")[:2]):
        if candidate and candidate.lower() in STATUS_LABELS:
            return candidate.lower()
    return config.default_language


admin = [Depends(require_admin)]


def _coerce(value: str) -> Any:
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def build_view(
    schema: ListSchema,
    records: List[Dict[str, Any]],
    request: Request,
    q: Optional[str],
    status: Optional[str],
    sort: Optional[str],
    direction: Optional[str],
    page: int,
) -> ListView:
    view = ListView(schema, records)
    view.search = q
    if schema.status_field:
        view.status = status
    for name in schema.filter_fields:
        value = request.query_params.get(name)
        if value:
            view.set_filter(name, _coerce(value))
    if sort or direction:
        view.sort_by(sort or view.sort_field, descending=(direction == "desc"))
    view.page = page
    return view


async def _read_uploads(files: List[UploadFile]) -> List[ImageUpload]:
    return [
        ImageUpload(filename=f.filename or "upload", content_type=f.content_type or "", data=await f.read())
        for f in files
    ]


def _toggled(service, record: Dict[str, Any], field_name: str, on: str, off: str) -> Dict[str, Any]:
    state = on if record.get(field_name) else off
    return {"item": record, "message": f"{service.label} {state} successfully"}


def add_collection_routes(
    prefix: str,
    schema: ListSchema,
    service_name: str,
    create_model: Type[BaseModel],
    update_model: Type[BaseModel],
    public_create: bool = False,
):
    """List, export, create, update and delete for one entity."""

    @router.get(f"/{prefix}", name=f"list_{prefix}")
    def list_records(
        request: Request,
        q: Optional[str] = None,
        status: Optional[str] = None,
        sort: Optional[str] = None,
        direction: Optional[str] = Query(None, pattern="^(asc|desc)$"),
        page: int = 1,
        services: Services = Depends(get_services),
    ):
        records = getattr(services, service_name).list_all()
        return build_view(schema, records, request, q, status, sort, direction, page).to_response()

    @router.get(f"/{prefix}/export", name=f"export_{prefix}")
    def export_records(
        request: Request,
        q: Optional[str] = None,
        status: Optional[str] = None,
        sort: Optional[str] = None,
        direction: Optional[str] = Query(None, pattern="^(asc|desc)$"),
        services: Services = Depends(get_services),
    ):
        records = getattr(services, service_name).list_all()
        view = build_view(schema, records, request, q, status, sort, direction, 1)
        content = view.export()
        return Response(
            content=content,
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{view.export_filename()}"'},
        )

    @router.post(f"/{prefix}", name=f"create_{prefix}", dependencies=[] if public_create else admin)
    def create_record(payload: create_model, services: Services = Depends(get_services)):
        new_id = EntityDraft(payload.model_dump(), adding=True).submit(getattr(services, service_name))
        return {"id": new_id}

    @router.patch(f"/{prefix}/{{record_id}}", name=f"update_{prefix}", dependencies=admin)
    def update_record(record_id: str, payload: update_model, services: Services = Depends(get_services)):
        service = getattr(services, service_name)
        sent = {k: v for k, v in payload.model_dump().items() if k in payload.model_fields_set}
        draft = EntityDraft({**sent, "id": record_id}, adding=False)
        draft.submit(service)
        return service.read(record_id)

    @router.delete(f"/{prefix}/{{record_id}}", name=f"delete_{prefix}", dependencies=admin)
    def delete_record(record_id: str, services: Services = Depends(get_services)):
        service = getattr(services, service_name)
        if not service.delete(record_id):
            raise HTTPException(status_code=404, detail=f"{service.label} not found")
        return {"deleted": True}


@router.get("/")
def read_root():
    return {"message": "Storefront Admin API Ready"}


@router.get("/schema")
def get_schema():
    """Expose the collections this service reads and writes."""
    return {
        "collections": [
            "category", "Products", "PRODUCT_VARIANT", "orders", "users",
            "blogs", "enquiries", "settings", "product_reviews",
        ]
    }


@router.get("/test")
def test_database(request: Request):
    store: DocumentStore = request.app.state.store
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_backend": store.backend,
        "database_url": "✅ Set" if request.app.state.config.database_url else "❌ Not Set",
        "collections": [],
    }
    try:
        response["collections"] = store.collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except AdminError as e:
        response["database"] = f"❌ Error: {e.message[:80]}"
    return response


# Categories
add_collection_routes("categories", CATEGORY_LIST, "categories", Category, CategoryUpdate)


@router.get("/categories/{category_id}")
def get_category(category_id: str, services: Services = Depends(get_services)):
    category = services.categories.read(category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.patch("/categories/{category_id}/toggle", dependencies=admin)
def toggle_category(category_id: str, services: Services = Depends(get_services)):
    record = toggle_status(services.categories, category_id, "is_active")
    return _toggled(services.categories, record, "is_active", "activated", "deactivated")


# Products
add_collection_routes("products", PRODUCT_LIST, "products", Product, ProductUpdate)


def _product_or_404(services: Services, product_id: str) -> Dict[str, Any]:
    product = services.products.read(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("/products/{product_id}")
def get_product(product_id: str, active_only: bool = False, services: Services = Depends(get_services)):
    product = services.products.read(product_id, active_variants_only=active_only)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.patch("/products/{product_id}/toggle", dependencies=admin)
def toggle_product(product_id: str, services: Services = Depends(get_services)):
    record = toggle_status(services.products, product_id, "is_active")
    return _toggled(services.products, record, "is_active", "activated", "deactivated")


@router.patch("/products/{product_id}/featured", dependencies=admin)
def toggle_product_featured(product_id: str, services: Services = Depends(get_services)):
    record = toggle_status(services.products, product_id, "is_featured")
    return _toggled(services.products, record, "is_featured", "featured", "unfeatured")


@router.post("/products/{product_id}/variants/{index}/move", dependencies=admin)
def move_variant(
    product_id: str,
    index: int,
    direction: str = Query(..., pattern="^(up|down)$"),
    services: Services = Depends(get_services),
):
    product = _product_or_404(services, product_id)
    variants = move_item(product["variants"], index, -1 if direction == "up" else 1)
    services.products.update(product_id, {"variants": variants})
    return {"variants": variants}


@router.delete("/products/{product_id}/variants/{index}", dependencies=admin)
def remove_variant(product_id: str, index: int, services: Services = Depends(get_services)):
    product = _product_or_404(services, product_id)
    variants = remove_item(product["variants"], index)
    services.products.update(product_id, {"variants": variants})
    return {"variants": variants}


@router.post("/products/{product_id}/images", dependencies=admin)
async def upload_product_images(
    product_id: str,
    files: List[UploadFile] = File(...),
    services: Services = Depends(get_services),
    images: ImageStore = Depends(get_images),
):
    product = await run_in_threadpool(_product_or_404, services, product_id)
    urls = await images.upload_many(await _read_uploads(files), "products")
    draft = EntityDraft(product, adding=False)
    for url in urls:
        draft.attach_image("images", url)
    await run_in_threadpool(services.products.update, product_id, {"images": draft.get("images")})
    return {"images": draft.get("images"), "uploaded": urls}


@router.delete("/products/{product_id}/images/{index}", dependencies=admin)
def remove_product_image(product_id: str, index: int, services: Services = Depends(get_services)):
    product = _product_or_404(services, product_id)
    remaining = remove_item(product["images"], index)
    services.products.update(product_id, {"images": remaining})
    return {"images": remaining}


@router.get("/products/{product_id}/reviews")
def product_reviews(product_id: str, services: Services = Depends(get_services)):
    return services.products.get_reviews(product_id)


@router.post("/products/{product_id}/reviews")
def add_review(product_id: str, review: Review, services: Services = Depends(get_services)):
    _product_or_404(services, product_id)
    return {"id": services.products.add_review(product_id, review)}


# Orders
add_collection_routes("orders", ORDER_LIST, "orders", Order, OrderUpdate, public_create=True)


@router.get("/orders/{order_id}")
def get_order(
    order_id: str,
    services: Services = Depends(get_services),
    language: str = Depends(get_language),
):
    order = services.orders.read(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return services.orders.describe(order, language)


@router.patch("/orders/{order_id}/status", dependencies=admin)
def update_order_status(order_id: str, payload: OrderStatusUpdate, services: Services = Depends(get_services)):
    if not services.orders.set_status(order_id, payload.status):
        raise HTTPException(status_code=404, detail="Order not found")
    return {"id": order_id, "status": payload.status}


# Users
add_collection_routes("users", USER_LIST, "users", User, UserUpdate)


@router.get("/users/{user_id}")
def get_user(user_id: str, services: Services = Depends(get_services)):
    user = services.users.read(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# Blog posts
add_collection_routes("blogs", BLOG_LIST, "blogs", BlogPost, BlogPostUpdate)


@router.get("/blogs/{blog_id}")
def get_blog(blog_id: str, services: Services = Depends(get_services)):
    post = services.blogs.read(blog_id)
    if not post:
        raise HTTPException(status_code=404, detail="Blog post not found")
    return post


# Enquiries
add_collection_routes("enquiries", ENQUIRY_LIST, "enquiries", Enquiry, EnquiryUpdate, public_create=True)


@router.get("/enquiries/{enquiry_id}")
def get_enquiry(enquiry_id: str, services: Services = Depends(get_services)):
    enquiry = services.enquiries.read(enquiry_id)
    if not enquiry:
        raise HTTPException(status_code=404, detail="Enquiry not found")
    return enquiry


# Settings
SETTINGS_LISTS = {
    "testimonials": "testimonials",
    "banners.desktop": "homepageBanners.desktop",
    "banners.mobile": "homepageBanners.mobile",
}


def _settings_or_503(services: Services) -> Dict[str, Any]:
    settings = services.settings.get()
    if settings is None:
        raise HTTPException(status_code=503, detail="Error fetching settings")
    return settings


def _save_path(services: Services, draft: EntityDraft, path: str) -> None:
    top = path.split(".")[0]
    services.settings.save({top: draft.get(top)})


@router.get("/settings")
def get_settings(services: Services = Depends(get_services)):
    return _settings_or_503(services)


@router.put("/settings", dependencies=admin)
def save_settings(payload: SiteSettings, services: Services = Depends(get_services)):
    services.settings.save(payload)
    return _settings_or_503(services)


@router.post("/settings/logo/{which}", dependencies=admin)
async def upload_logo(
    which: str,
    file: UploadFile = File(...),
    services: Services = Depends(get_services),
    images: ImageStore = Depends(get_images),
):
    if which not in ("header", "footer"):
        raise HTTPException(status_code=404, detail="Unknown logo")
    uploads = await _read_uploads([file])
    url = await run_in_threadpool(images.upload, uploads[0], "logos")
    await run_in_threadpool(services.settings.save, {f"{which}Logo": url})
    return {f"{which}Logo": url}


@router.post("/settings/banners/{device}", dependencies=admin)
async def upload_banners(
    device: str,
    files: List[UploadFile] = File(...),
    services: Services = Depends(get_services),
    images: ImageStore = Depends(get_images),
):
    if device not in ("desktop", "mobile"):
        raise HTTPException(status_code=404, detail="Unknown banner set")
    settings = await run_in_threadpool(_settings_or_503, services)
    urls = await images.upload_many(await _read_uploads(files), f"banners/{device}")
    draft = EntityDraft(settings, adding=False)
    for url in urls:
        draft.attach_image(f"homepageBanners.{device}", url)
    await run_in_threadpool(_save_path, services, draft, "homepageBanners")
    return draft.get("homepageBanners")


@router.post("/settings/testimonials", dependencies=admin)
def add_testimonial(payload: Testimonial, services: Services = Depends(get_services)):
    draft = EntityDraft(_settings_or_503(services), adding=False)
    draft.append("testimonials", payload.model_dump())
    _save_path(services, draft, "testimonials")
    return draft.get("testimonials")


@router.post("/settings/testimonials/{index}/image", dependencies=admin)
async def upload_testimonial_image(
    index: int,
    file: UploadFile = File(...),
    services: Services = Depends(get_services),
    images: ImageStore = Depends(get_images),
):
    settings = await run_in_threadpool(_settings_or_503, services)
    draft = EntityDraft(settings, adding=False)
    uploads = await _read_uploads([file])
    url = await run_in_threadpool(images.upload, uploads[0], "testimonials")
    draft.set_item("testimonials", index, imageSrc=url)
    await run_in_threadpool(_save_path, services, draft, "testimonials")
    return draft.get("testimonials")[index]


def _settings_list_path(section: str) -> str:
    if section not in SETTINGS_LISTS:
        raise HTTPException(status_code=404, detail=f"Unknown settings list: {section}")
    return SETTINGS_LISTS[section]


@router.post("/settings/{section}/{index}/move", dependencies=admin)
def move_settings_item(
    section: str,
    index: int,
    direction: str = Query(..., pattern="^(up|down)$"),
    services: Services = Depends(get_services),
):
    path = _settings_list_path(section)
    draft = EntityDraft(_settings_or_503(services), adding=False)
    if direction == "up":
        draft.move_up(path, index)
    else:
        draft.move_down(path, index)
    _save_path(services, draft, path)
    return draft.get(path)


@router.delete("/settings/{section}/{index}", dependencies=admin)
def remove_settings_item(section: str, index: int, services: Services = Depends(get_services)):
    path = _settings_list_path(section)
    draft = EntityDraft(_settings_or_503(services), adding=False)
    draft.remove(path, index)
    _save_path(services, draft, path)
    return draft.get(path)


# Images
@router.post("/images", dependencies=admin)
async def upload_image(
    folder: str = "images",
    file: UploadFile = File(...),
    images: ImageStore = Depends(get_images),
):
    uploads = await _read_uploads([file])
    url = await run_in_threadpool(images.upload, uploads[0], folder)
    return {"url": url}


@router.delete("/images", dependencies=admin)
def delete_image(url: str, images: ImageStore = Depends(get_images)):
    images.delete(url)
    return {"deleted": True}


@router.get("/media/{path:path}")
def serve_media(path: str, images: ImageStore = Depends(get_images)):
    found = images.open(path)
    if found is None:
        raise HTTPException(status_code=404, detail="Image not found")
    data, content_type = found
    return Response(content=data, media_type=content_type)


async def handle_admin_error(request: Request, exc: AdminError):
    if isinstance(exc, RuleViolation):
        logger.warning(f"Rejected {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[DocumentStore] = None,
    images: Optional[ImageStore] = None,
) -> FastAPI:
    config = config or AppConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    store = store or connect(config)
    if images is None:
        if isinstance(store, MongoDocumentStore):
            images = GridFSImageStore(store.db, config.public_base_url)
        else:
            images = MemoryImageStore(config.public_base_url)

    app = FastAPI(title="Storefront Admin API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.config = config
    app.state.store = store
    app.state.images = images
    app.state.services = build_services(store, config)
    app.add_exception_handler(AdminError, handle_admin_error)
    app.include_router(router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
