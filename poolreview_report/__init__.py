from .checks import (
    WHITESPACE_WARNING,
    RulesCheckError,
    RulesCheckLevel,
    RulesCheckResult,
    check_datasheet,
    check_package,
    needs_trim,
)
from .exporters import ReviewExportBundle, export_pool_update_errors, export_review, render_pool_update_errors
from .markdown import image_link, render_markdown
from .previews import (
    SYMBOL_VIEWS,
    PackageDrawing,
    RenderedImage,
    SymbolDrawing,
    image_filename,
    padstack_shapes,
    render_package_image,
    render_symbol_images,
)
from .review import (
    AttributeRow,
    EntityDetails,
    GateRow,
    PackageDetails,
    PadRow,
    PartDetails,
    PartsTableRow,
    PinRow,
    ReviewBuilder,
    ReviewModel,
    RootPreviews,
    SymbolPreview,
    UnitDetails,
    build_review,
)

__all__ = [
    "AttributeRow",
    "EntityDetails",
    "GateRow",
    "PackageDetails",
    "PackageDrawing",
    "PadRow",
    "PartDetails",
    "PartsTableRow",
    "PinRow",
    "RenderedImage",
    "ReviewBuilder",
    "ReviewExportBundle",
    "ReviewModel",
    "RootPreviews",
    "RulesCheckError",
    "RulesCheckLevel",
    "RulesCheckResult",
    "SYMBOL_VIEWS",
    "SymbolDrawing",
    "SymbolPreview",
    "UnitDetails",
    "WHITESPACE_WARNING",
    "build_review",
    "check_datasheet",
    "check_package",
    "export_pool_update_errors",
    "export_review",
    "image_filename",
    "image_link",
    "needs_trim",
    "padstack_shapes",
    "render_markdown",
    "render_package_image",
    "render_pool_update_errors",
    "render_symbol_images",
]
