from svcman.cli.app import app

app(prog_name="svcman")
