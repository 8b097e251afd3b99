from .cli import app

app(prog_name="pr-load-balancer")
