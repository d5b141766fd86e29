from tinyorm.cli.app import app

app(prog_name="tinyorm")
