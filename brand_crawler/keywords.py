"""Keyword sets shared by image classification, color filtering and synthesis."""

from __future__ import annotations

SOCIAL_NETWORK_TERMS = frozenset(
    {
        "facebook",
        "instagram",
        "linkedin",
        "x-logo",
        "twitter",
        "tiktok",
        "youtube",
        "pinterest",
        "snapchat",
        "whatsapp",
        "telegram",
        "discord",
        "social-icon",
        "social_icon",
        "socialicon",
        "social-media",
    }
)

PLATFORM_VENDOR_TERMS = frozenset(
    {
        "squarespace",
        "wix",
        "godaddy",
        "canva",
        "shopify",
        "wordpress",
        "webflow",
        "weebly",
        "duda",
        "jimdo",
    }
)

LOGOISH_TERMS = frozenset(
    {
        "logo",
        "logotype",
        "brandmark",
        "mark",
        "badge",
        "favicon",
        "powered-by",
        "powered_by",
    }
)

LOGO_TERMS = frozenset(
    {"logo", "logotype", "brandmark", "wordmark", "site-logo", "site_logo"}
)

PARTNER_TERMS = frozenset(
    {
        "partner",
        "association",
        "member",
        "vendor",
        "powered-by",
        "powered_by",
        "powered by",
        "sponsor",
        "affiliate",
        "certified",
        "featured-in",
        "featured in",
        "as-seen-on",
        "as seen on",
        "accredited",
    }
)

TEAM_TERMS = frozenset(
    {"team", "staff", "founder", "ceo", "director", "employee", "people"}
)

SUBJECT_TERMS = frozenset({"product", "service", "feature", "offering"})

GRAPHIC_TERMS = frozenset(
    {"icon", "graphic", "illustration", "sprite", "pattern", "texture", "divider"}
)

UI_ICON_TERMS = frozenset(
    {
        "envelope",
        "mail",
        "email",
        "globe",
        "phone",
        "arrow",
        "chevron",
        "caret",
        "hamburger",
        "menu",
        "search",
        "magnify",
        "user",
        "avatar",
        "account",
        "settings",
        "cog",
        "gear",
        "star",
        "heart",
        "share",
        "download",
        "upload",
        "play",
        "pause",
        "close",
        "x-mark",
        "check",
        "checkmark",
        "plus",
        "minus",
        "cart",
        "basket",
        "lock",
        "bell",
        "notification",
        "calendar",
        "clock",
        "location",
        "marker",
        "external",
        "new-window",
        "clipboard",
        "pencil",
        "trash",
        "spinner",
        "loading",
    }
)

ICON_PACK_PATHS = (
    "/icons/",
    "/icon/",
    "/assets/icons",
    "/img/icons",
    "/images/icons",
    "/iconpack/",
    "/icon-pack/",
    "/ui-icons/",
    "/ui/icons",
    "/fontawesome",
    "/feather",
    "/heroicons",
    "/lucide",
    "/bootstrap-icons",
    "/material-icons",
    "/ionicons",
    "/tabler-icons",
    "/phosphor-icons",
)

PLACEHOLDER_PATHS = (
    "placeholder",
    "/blank.",
    "/spacer.",
    "/pixel.",
    "/loader.",
    "1x1.gif",
    "1x1.png",
    "tracking.gif",
    "track.gif",
    "sprite.svg",
    "sprite.png",
    "spritesheet",
)

BLOCKED_IMAGE_HOSTS = (
    "maps.googleapis.com",
    "maps.google.com",
    "google-analytics.com",
    "googletagmanager.com",
    "doubleclick.net",
    "connect.facebook.net",
    "staticxx.facebook.com",
    "snap.licdn.com",
    "bat.bing.com",
    "px.ads.linkedin.com",
)

BLOCKED_HOST_LABELS = frozenset({"adservice", "ads", "pixel", "track", "analytics"})

TILE_PATTERNS = ("/maps/vt", "tile?", "/tiles/", "staticmap?", "pb=!")

HERO_CONTAINER_TERMS = ("hero", "banner", "masthead", "jumbotron", "splash")

LOGO_CONTAINER_TERMS = ("logo", "brand")

TEAM_PAGE_TERMS = ("team", "staff", "people", "leadership", "our-people")

ABOUT_PAGE_TERMS = ("about", "our-story", "who-we-are")

BRAND_CSS_VARIABLES = (
    "--primary",
    "--secondary",
    "--accent",
    "--brand-primary",
    "--brand-secondary",
    "--brand-accent",
    "--color-primary",
    "--color-secondary",
    "--color-accent",
    "--main-color",
    "--accent-color",
    "--highlight-color",
    "--theme-color",
    "--brand-color",
)

GENERIC_FONT_FAMILIES = frozenset(
    {
        "serif",
        "sans-serif",
        "monospace",
        "cursive",
        "fantasy",
        "system-ui",
        "ui-sans-serif",
        "ui-serif",
        "ui-monospace",
        "ui-rounded",
        "-apple-system",
        "blinkmacsystemfont",
        "inherit",
        "initial",
        "unset",
        "emoji",
        "math",
    }
)

GOOGLE_FONTS = (
    "Inter",
    "Roboto",
    "Open Sans",
    "Lato",
    "Montserrat",
    "Poppins",
    "Raleway",
    "Oswald",
    "Source Sans Pro",
    "Playfair Display",
    "Merriweather",
    "PT Sans",
    "Nunito",
    "Ubuntu",
    "Crimson Text",
    "Fira Sans",
    "Droid Sans",
    "Droid Serif",
    "Work Sans",
    "DM Sans",
    "Rubik",
    "Libre Baskerville",
)

STOPWORDS = frozenset(
    {
        "that",
        "this",
        "with",
        "from",
        "have",
        "will",
        "your",
        "their",
        "about",
        "they",
        "them",
        "what",
        "when",
        "where",
        "which",
        "there",
        "been",
        "were",
        "more",
        "also",
        "into",
        "than",
        "then",
        "these",
        "those",
        "each",
        "only",
        "over",
        "such",
        "some",
        "very",
        "just",
        "here",
        "while",
        "would",
        "could",
        "should",
        "other",
        "after",
        "before",
        "because",
        "through",
        "ours",
        "yours",
        "make",
        "like",
        "many",
        "most",
        "much",
        "every",
    }
)
