"""Starter ESCO-style skill taxonomy (a real deployment imports the full dataset)."""

SEED_SKILLS = [
    {"esco_id": "S1.0.0", "name": "JavaScript", "category": "Programming Language", "description": "Programming language for web development"},
    {"esco_id": "S1.0.1", "name": "TypeScript", "category": "Programming Language", "description": "Typed superset of JavaScript"},
    {"esco_id": "S1.0.2", "name": "Python", "category": "Programming Language", "description": "High-level programming language"},
    {"esco_id": "S1.0.3", "name": "Java", "category": "Programming Language", "description": "Object-oriented programming language"},
    {"esco_id": "S1.0.4", "name": "Go", "category": "Programming Language", "description": "Statically typed compiled language from Google"},
    {"esco_id": "S1.0.5", "name": "SQL", "category": "Programming Language", "description": "Query language for relational databases"},
    {"esco_id": "S1.1.0", "name": "React", "category": "Frontend Framework", "description": "JavaScript library for building user interfaces"},
    {"esco_id": "S1.1.1", "name": "Vue", "category": "Frontend Framework", "description": "Progressive JavaScript framework"},
    {"esco_id": "S1.1.2", "name": "Angular", "category": "Frontend Framework", "description": "Platform for building mobile and desktop web applications"},
    {"esco_id": "S1.2.0", "name": "Node.js", "category": "Backend Framework", "description": "JavaScript runtime built on Chrome V8 engine"},
    {"esco_id": "S1.2.1", "name": "Express", "category": "Backend Framework", "description": "Minimal web framework for Node.js"},
    {"esco_id": "S1.2.2", "name": "Fastify", "category": "Backend Framework", "description": "Low overhead web framework for Node.js"},
    {"esco_id": "S1.2.3", "name": "Django", "category": "Backend Framework", "description": "Batteries-included Python web framework"},
    {"esco_id": "S1.2.4", "name": "FastAPI", "category": "Backend Framework", "description": "Async Python web framework"},
    {"esco_id": "S1.3.0", "name": "Docker", "category": "DevOps", "description": "Platform for developing, shipping, and running applications"},
    {"esco_id": "S1.3.1", "name": "Kubernetes", "category": "DevOps", "description": "Container orchestration system"},
    {"esco_id": "S1.3.2", "name": "AWS", "category": "Cloud Platform", "description": "Amazon Web Services cloud platform"},
    {"esco_id": "S1.3.3", "name": "Azure", "category": "Cloud Platform", "description": "Microsoft Azure cloud platform"},
    {"esco_id": "S1.4.0", "name": "PostgreSQL", "category": "Database", "description": "Object-relational database system"},
    {"esco_id": "S1.4.1", "name": "MongoDB", "category": "Database", "description": "Document-oriented NoSQL database"},
    {"esco_id": "S1.4.2", "name": "Redis", "category": "Database", "description": "In-memory data structure store"},
    {"esco_id": "S1.5.0", "name": "Machine Learning", "category": "AI/ML", "description": "Algorithms that learn from data"},
    {"esco_id": "S1.5.1", "name": "Deep Learning", "category": "AI/ML", "description": "Neural networks with multiple layers"},
    {"esco_id": "S1.5.2", "name": "PyTorch", "category": "ML Framework", "description": "Open source machine learning framework"},
    {"esco_id": "S1.5.3", "name": "TensorFlow", "category": "ML Framework", "description": "End-to-end open source machine learning platform"},
]

# (canonical name, alias, confidence or None for the default)
SEED_ALIASES = [
    ("JavaScript", "js", None),
    ("JavaScript", "ecmascript", None),
    ("JavaScript", "es6", 0.9),
    ("JavaScript", "es2015", 0.9),
    ("TypeScript", "ts", None),
    ("Python", "py", None),
    ("Python", "python3", None),
    ("React", "reactjs", None),
    ("React", "react.js", None),
    ("Vue", "vuejs", None),
    ("Vue", "vue.js", None),
    ("Node.js", "nodejs", None),
    ("Node.js", "node", None),
    ("Express", "express.js", None),
    ("Go", "golang", None),
    ("Kubernetes", "k8s", None),
    ("AWS", "amazon web services", None),
    ("AWS", "amazon aws", None),
    ("Azure", "microsoft azure", None),
    ("PostgreSQL", "postgres", None),
    ("PostgreSQL", "psql", None),
    ("MongoDB", "mongo", None),
    ("Machine Learning", "ml", None),
    ("Machine Learning", "artificial intelligence", 0.8),
    ("Deep Learning", "dl", None),
    ("Deep Learning", "neural networks", 0.85),
    ("PyTorch", "torch", 0.9),
]
