from stackgen.cli.app import app

app(prog_name="stackgen")
