"""Entity ↔ file projection.

Layout of a projected tree (root defaults to `data`):
    data/
    ├── metadata.json                       # Optional manifest (workspaces/categories/folders)
    └── {workspace}/
        └── {category}/
            └── {folder}/
                └── {item title}.md         # Frontmatter header + type-specific Markdown body
"""
