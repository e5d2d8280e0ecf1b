from vmclaim.main import run

run()
