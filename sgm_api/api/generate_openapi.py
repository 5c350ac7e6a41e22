import json
import os

from sgm_api.api.main import app

# Get the OpenAPI schema (note: all REST routes are under /api/v1)
openapi_schema = app.openapi()

# Document the bearer scheme expected by every route except /authenticate* and /health
components = openapi_schema.setdefault("components", {})
components.setdefault("securitySchemes", {})["bearerAuth"] = {
    "type": "http",
    "scheme": "bearer",
    "bearerFormat": "JWT",
}

# Write to file
output_dir = "interfaces"
os.makedirs(output_dir, exist_ok=True)
output_path = os.path.join(output_dir, "openapi.json")

with open(output_path, "w") as f:
    json.dump(openapi_schema, f, indent=2)
