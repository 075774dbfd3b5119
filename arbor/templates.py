"""
Arbor templates: parameterized, reusable batches of directives.

A template is any object with an expand(tool) method; subclass Template and
keep the parameters on the instance:

    class Clean(Template):
        def __init__(self, name="clean", paths=("build",)):
            self.name = name
            self.paths = list(paths)

        def expand(self, tool):
            paths = self.paths

            @tool.tool(self.name)
            def clean(tool):
                tool.desc("Remove %s" % ", ".join(paths))
                tool.run(lambda context: remove(paths))

Register it with tool.template("clean", Clean) and apply it anywhere below
with tool.expand("clean", paths=["dist"]), or expand the class directly.
"""


class Template:
    """Base class of templates."""

    def expand(self, tool):
        raise NotImplementedError("%s must implement expand(tool)" % type(self).__name__)


__all__ = (
    "Template",
)
